# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
See src/taskup/config.py for parsing and defaults.

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TASKUP_APP_NAME": "App display name (default: TaskUp).",
    "TASKUP_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    "TASKUP_CONSOLE_ENABLED": "Run the interactive console (true/false, default: true).",
    # Paths (gitignored)
    "TASKUP_DATA_DIR": "Local data directory (default: .local/taskup).",
    "TASKUP_TASKS_DB_PATH": "Task document store SQLite path (default: <data_dir>/tasks.sqlite3).",
    "TASKUP_USERS_DB_PATH": "Local accounts SQLite path (default: <data_dir>/users.sqlite3).",
    "TASKUP_BCRYPT_ROUNDS": "bcrypt cost factor for local account passwords (default: 12, range 4-16).",
    "TASKUP_BLOB_DIR": "Where task images are copied when no upload URL is set (default: <data_dir>/blobs).",
    # Image upload
    "TASKUP_BLOB_UPLOAD_URL": "Optional HTTP upload endpoint; answers {\"url\": ...}. Empty => local copies.",
    "TASKUP_BLOB_TIMEOUT_SECONDS": "Upload timeout in seconds (default: 30).",
    # Engine timing
    "TASKUP_TICK_SECONDS": "Deadline monitor / stopwatch tick (default: 1.0, floor 0.1).",
    "TASKUP_CHANGE_POLL_SECONDS": "How often to look for writes from other processes (default: 2.0).",
    # New task form
    "TASKUP_DEFAULT_TIME_LIMIT_MIN": "Time limit used by /add when --limit is not given (default: 30).",
    "TASKUP_MIN_TIME_LIMIT_MIN": "Smallest accepted time limit; shorter ones are raised to it (default: 5).",
}
