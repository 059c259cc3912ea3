# tests/test_aggregate.py

from __future__ import annotations

from datetime import timedelta

from taskup.tasks.aggregate import (
    EXPIRED,
    build_view,
    format_elapsed,
    format_remaining,
    remaining,
    sort_tasks,
)

from .fakes import T0, make_task


def test_counts_partition_the_snapshot() -> None:
    tasks = [
        make_task("a"),
        make_task("b", is_completed=True),
        make_task("c"),
    ]
    view = build_view(tasks, T0)
    assert view.active_count == 2
    assert view.completed_count == 1
    assert view.active_count + view.completed_count == view.total == 3


def test_empty_snapshot() -> None:
    view = build_view([], T0)
    assert view.rows == ()
    assert (view.active_count, view.completed_count) == (0, 0)


def test_newest_first_and_ties_keep_input_order() -> None:
    tasks = [
        make_task("old", created_at=T0),
        make_task("tie-1", created_at=T0 + timedelta(seconds=5)),
        make_task("new", created_at=T0 + timedelta(seconds=9)),
        make_task("tie-2", created_at=T0 + timedelta(seconds=5)),
    ]
    assert [t.id for t in sort_tasks(tasks)] == ["new", "tie-1", "tie-2", "old"]


def test_remaining_formats() -> None:
    task = make_task(end_date=T0 + timedelta(minutes=5))

    assert remaining(task, T0) == "5:00"
    assert remaining(task, T0 + timedelta(minutes=4, seconds=59)) == "0:01"
    assert remaining(task, T0 + timedelta(minutes=5)) is EXPIRED
    assert remaining(task, T0 + timedelta(hours=1)) is EXPIRED
    assert remaining(make_task(end_date=None), T0) is None


def test_last_second_floors_to_zero_before_expiring() -> None:
    task = make_task(end_date=T0 + timedelta(seconds=1))

    assert remaining(task, T0 + timedelta(milliseconds=1)) == "0:00"
    assert remaining(task, T0 + timedelta(milliseconds=999)) == "0:00"
    assert remaining(task, T0 + timedelta(seconds=1)) is EXPIRED


def test_expired_renders_as_times_up() -> None:
    assert str(EXPIRED) == "Time's up!"


def test_format_remaining_does_not_wrap_hours() -> None:
    assert format_remaining(timedelta(minutes=90, seconds=3)) == "90:03"


def test_format_elapsed() -> None:
    assert format_elapsed(0) == "00:00:00"
    assert format_elapsed(3725) == "01:02:05"
    assert format_elapsed(-5) == "00:00:00"


def test_rows_use_elapsed_callback() -> None:
    view = build_view([make_task("a", time_spent=3)], T0, elapsed=lambda t: t.time_spent + 10)
    (row,) = view.rows
    assert row.elapsed == 13
    assert row.elapsed_text == "00:00:13"
    assert row.remaining is None
