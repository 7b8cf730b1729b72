"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskStatus, Priority, DurationClass, Category)
- time_policy.py: due-date / elapsed / remaining computations
- validation.py: field rules applied before every mutation
- categories.py: predefined + custom category registry
- filters.py: composable list() predicates and the canonical ordering
- task_store.py: in-memory authoritative store with the status state machine
- task_scheduler.py: polling reminder scheduler
- task_api.py: high-level helpers (operation + flush to disk)
"""
