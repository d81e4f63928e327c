"""
edda: offline-first personal task tracker.

Packages:
- tasks: Task model, SQLite store, validating engine
- sync: offline queue, local cache, conflict resolver, sync manager, GitHub provider
- core: errors, ports (protocols), app state
- cli / connectors: composition root, slash commands, console REPL, entrypoint
"""
