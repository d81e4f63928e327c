"""
Sync subsystem.

Components:
- sync_models.py: operations, cache entries, strategies, SyncReport
- rwlock.py: shared-read / exclusive-write asyncio lock
- offline_queue.py: bounded queue of unsynced operations
- local_cache.py: last-known entity state + per-entity sync status
- resolver.py: local vs remote conflict resolution
- retry.py: timeout + bounded retry for provider calls
- sync_manager.py: composes the above over a TaskStore
- sync_scheduler.py: periodic sync loop
- github_provider.py: GitHub Issues provider (httpx)
"""
