"""
Task subsystem.

Components:
- task_models.py: data structures (Task, Priority) and validation
- errors.py: ValidationError / StoreUnavailable
- task_store.py: SQLite-backed store + the offline fallback store
- task_cache.py: in-memory mirror with a read-only live view
- task_scheduler.py: reminder timers, sweep backstop and notifier responses
- task_service.py: the resilient service the rest of the app talks to
"""
