"""
Task subsystem.

Components:
- task_models.py: data structures (Task, NewTask, TaskPatch)
- task_store.py: SQLite document store with live per-owner snapshots
- task_adapter.py: typed subscribe/create/update/remove over the store
- snapshot.py: single-writer cache of the latest snapshot
- deadline_monitor.py: per-tick sweep that completes expired tasks
- elapsed_tracker.py: per-task stopwatch for display
- aggregate.py: counts, ordering and remaining-time strings
- task_session.py: per-user wiring of the above + auth-driven lifecycle
- task_api.py: small high-level helpers used by the console
"""
