# src/taskup/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import timedelta

from ..core.errors import TaskUpError, ValidationError
from ..core.state import AppState
from ..tasks import task_api
from ..tasks.aggregate import RemainingState, TaskView
from ..tasks.task_models import Task
from ..tasks.task_session import LoadState

CommandHandler = Callable[[AppState, list[str]], str]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, state: AppState, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        User-facing errors (TaskUpError) become the reply; anything else propagates.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            return handler(state, args)
        except TaskUpError as e:
            logger.info("/%s failed: %s", name, e)
            return f"Error: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- rendering ----


def _remaining_text(row_remaining: str | RemainingState | None) -> str:
    if row_remaining is None:
        return "no deadline"
    if isinstance(row_remaining, RemainingState):
        return str(row_remaining)
    return f"left {row_remaining}"


def render_view(view: TaskView) -> str:
    header = f"Tasks: {view.active_count} active, {view.completed_count} completed"
    if not view.rows:
        return header + "\n  (no tasks yet, use /add <title>)"

    lines = [header]
    for i, row in enumerate(view.rows, start=1):
        t = row.task
        mark = "x" if t.is_completed else " "
        start = t.start_date.astimezone().strftime("%Y-%m-%d %H:%M")
        parts = [f"{i:>3}. [{mark}] {t.title}", f"start {start}", f"spent {row.elapsed_text}"]
        if not t.is_completed:
            parts.append(_remaining_text(row.remaining))
        if t.image_url:
            parts.append(f"image {t.image_url}")
        parts.append(f"(id {t.id[:8]})")
        lines.append("  ".join(parts))
    return "\n".join(lines)


# ---- helpers (run on the engine loop via state.call) ----


def _find_task(state: AppState, ref: str) -> Task:
    task_session = state.require_session()
    view = task_session.view()
    if ref.isdigit() and 1 <= int(ref) <= view.total:
        return view.rows[int(ref) - 1].task

    # Ids are hex, so an all-digit ref may still be an id prefix.
    matches = [t for t in view.tasks if t.id.startswith(ref)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        if ref.isdigit():
            raise ValidationError(f"no task #{int(ref)} (have {view.total})")
        raise ValidationError(f"no task with id {ref}")
    raise ValidationError(f"id prefix {ref} is ambiguous")


def _current_view(state: AppState) -> str:
    task_session = state.require_session()
    if task_session.load_state is LoadState.FAILED:
        return f"Failed to load tasks: {task_session.error}"
    if task_session.load_state is LoadState.LOADING:
        return "Loading tasks..."
    return render_view(task_session.view())


def _need_ref(args: list[str], usage: str) -> str:
    if not args:
        raise ValidationError(f"usage: {usage}")
    return args[0]


# ---- commands ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_register(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        raise ValidationError("usage: /register <email> <password>")
    user = state.run(state.auth.register(args[0], args[1]))
    return f"Account created. Signed in as {user.email}."


def cmd_login(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        raise ValidationError("usage: /login <email> <password>")
    user = state.run(state.auth.login(args[0], args[1]))
    return f"Signed in as {user.email}."


def cmd_logout(state: AppState, args: list[str]) -> str:
    state.run(state.auth.logout())
    return "Signed out."


def cmd_whoami(state: AppState, args: list[str]) -> str:
    user = state.call(lambda: state.auth.current_user)
    return f"Signed in as {user.email}." if user else "Not signed in."


def _parse_add_args(args: list[str]) -> tuple[str, int | None, bool, str | None]:
    title_parts: list[str] = []
    limit: int | None = None
    with_deadline = True
    image: str | None = None

    it = iter(args)
    for arg in it:
        if arg == "--limit":
            raw = next(it, "")
            try:
                limit = int(raw)
            except ValueError:
                raise ValidationError(f"--limit expects minutes, got {raw!r}") from None
        elif arg == "--no-deadline":
            with_deadline = False
        elif arg == "--image":
            image = next(it, "") or None
        else:
            title_parts.append(arg)

    return " ".join(title_parts), limit, with_deadline, image


def cmd_add(state: AppState, args: list[str]) -> str:
    title, limit, with_deadline, image = _parse_add_args(args)
    settings = state.settings
    task_session = state.call(state.require_session)

    task_id = state.run(
        task_api.create_task(
            task_session.adapter,
            title=title,
            time_limit_minutes=limit,
            with_deadline=with_deadline,
            image_path=image,
            blob=state.blob,
            default_limit=int(getattr(settings, "default_time_limit_min", task_api.DEFAULT_TIME_LIMIT_MINUTES)),
            min_limit=int(getattr(settings, "min_time_limit_min", task_api.MIN_TIME_LIMIT_MINUTES)),
        )
    )
    return f"Task created (id {task_id[:8]})."


def cmd_list(state: AppState, args: list[str]) -> str:
    return state.call(_current_view, state)


def cmd_stats(state: AppState, args: list[str]) -> str:
    def _stats() -> str:
        view = state.require_session().view()
        return f"Active: {view.active_count} | Completed: {view.completed_count} | Total: {view.total}"

    return state.call(_stats)


def cmd_done(state: AppState, args: list[str]) -> str:
    ref = _need_ref(args, "/done <n|id>")
    task_session = state.call(state.require_session)
    task = state.call(_find_task, state, ref)
    if task.is_completed:
        return f"Already completed: {task.title}"
    state.run(task_api.complete_task(task_session.adapter, task, tracker=task_session.tracker))
    return f"Completed: {task.title}"


def cmd_toggle(state: AppState, args: list[str]) -> str:
    ref = _need_ref(args, "/toggle <n|id>")
    task_session = state.call(state.require_session)
    task = state.call(_find_task, state, ref)
    completed = state.run(task_api.toggle_task(task_session.adapter, task, tracker=task_session.tracker))
    return f"{'Completed' if completed else 'Reopened'}: {task.title}"


def cmd_rm(state: AppState, args: list[str]) -> str:
    ref = _need_ref(args, "/rm <n|id>")
    task_session = state.call(state.require_session)
    task = state.call(_find_task, state, ref)
    state.run(task_api.delete_task(task_session.adapter, task.id))
    return f"Deleted: {task.title}"


def cmd_deadline(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        raise ValidationError("usage: /deadline <n|id> <minutes from now|none>")
    task_session = state.call(state.require_session)
    task = state.call(_find_task, state, args[0])

    raw = args[1].lower()
    if raw in ("none", "off", "-"):
        state.run(task_api.set_deadline(task_session.adapter, task.id, None))
        return f"Deadline removed: {task.title}"

    try:
        minutes = int(raw)
    except ValueError:
        raise ValidationError(f"minutes expected, got {args[1]!r}") from None
    if minutes <= 0:
        raise ValidationError("minutes must be positive")

    end_date = task_session.now() + timedelta(minutes=minutes)
    state.run(task_api.set_deadline(task_session.adapter, task.id, end_date))
    return f"Deadline set to {end_date.astimezone().strftime('%H:%M:%S')}: {task.title}"


registry.register("help", cmd_help, "Show this help", aliases=["h", "?"])
registry.register("register", cmd_register, "Create an account: /register <email> <password>")
registry.register("login", cmd_login, "Sign in: /login <email> <password>")
registry.register("logout", cmd_logout, "Sign out")
registry.register("whoami", cmd_whoami, "Show the signed-in user")
registry.register(
    "add",
    cmd_add,
    "New task: /add [--limit MIN | --no-deadline] [--image PATH] <title>",
    aliases=["new"],
)
registry.register("list", cmd_list, "List tasks (newest first)", aliases=["ls"])
registry.register("stats", cmd_stats, "Active/completed counts")
registry.register("done", cmd_done, "Complete a task: /done <n|id>")
registry.register("toggle", cmd_toggle, "Complete/reopen a task: /toggle <n|id>")
registry.register("rm", cmd_rm, "Delete a task: /rm <n|id>", aliases=["del"])
registry.register("deadline", cmd_deadline, "Set/clear deadline: /deadline <n|id> <minutes|none>")
