"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskKind, TaskStatus)
- id_generator.py: monotonic ids shared by all entity kinds
- time_slots.py: reserved time intervals + overlap checks
- aggregation.py: epic status/time bounds derived from subtasks
- history.py: bounded recently-viewed list
- task_service.py: CRUD + invariants over the three collections
- task_codec.py: flat CSV snapshot format
- task_store.py: persistence backings (memory, CSV file, SQLite)
"""
