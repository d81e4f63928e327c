"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskStatus, Priority, Annotation) and the status state machine
- task_store.py: SQLite-backed storage + TaskFilter
- task_engine.py: validation layer used by the rest of the app
"""
