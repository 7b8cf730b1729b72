# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TASKLANE_APP_NAME": "App display name (default: tasklane).",
    "TASKLANE_LOG_LEVEL": "Console logging level (default: INFO).",
    "TASKLANE_OWNER": "Default assignee for new tasks (default: current OS user).",
    # Paths (gitignored)
    "TASKLANE_DATA_DIR": "Local data directory (default: .local/tasklane).",
    "TASKLANE_TASKS_PATH": "Primary data file (default: <data_dir>/tasks.json).",
    "TASKLANE_CATEGORIES_PATH": "Category registry file (default: <data_dir>/categories.json).",
    "TASKLANE_BACKUP_DIR": "Backup directory (default: <data_dir>/backups).",
    "TASKLANE_BACKUP_RETENTION_DAYS": "Delete backups older than this many days (default: 30).",
    # Reminders
    "TASKLANE_REMINDERS_ENABLED": "Run the reminder scheduler in the console (true/false).",
    "TASKLANE_REMINDER_INTERVAL_SECONDS": "Seconds between reminder scans (default: 60).",
    "TASKLANE_DUE_SOON_HOURS": "Remind when a task is due within this many hours (default: 24).",
    # Store
    "TASKLANE_VALIDATION_POLICY": "fail_fast (first error) or accumulate (all errors).",
}
