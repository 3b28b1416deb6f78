"""
Dispatch layer: matching jobs to online cleaners.

This package holds the matching core:
- ``registry``: WorkerRegistry, cleaner presence and location
- ``proximity``: ProximityIndex, haversine ranking of candidates
- ``job_store``: JobStore, job lifecycle with the conditional assign
- ``engine``: DispatchEngine, nearest-first assignment with conflict fallback

Dispatch code must NOT import transport modules.
"""
