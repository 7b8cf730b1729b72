"""
tasklane: a single-user task manager engine.

Subpackages:
- tasks/: models, time policy, validation, categories, store, reminder scheduler
- storage/: snapshot codec + atomic persistence with backups
- cli/ and connectors/: command surface and console front-end
"""

__version__ = "0.1.0"
