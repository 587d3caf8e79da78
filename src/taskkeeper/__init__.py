"""
taskkeeper: tasks, epics and subtasks with derived epic state.

Packages:
- tasks/: entity model, task service and everything it owns
- core/: ports (Protocols) and application state
- cli/: composition root, slash commands, entrypoint
- connectors/: console REPL
"""
