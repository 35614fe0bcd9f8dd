"""
Domain Entities

Entities are business objects with identity and lifecycle.
They are mutable and have a unique identifier that persists through their lifetime.

- BroadcastJob: one looped upload being pushed to its destinations
- ProcessHandle: the running process (or external job) a BroadcastJob owns
"""
from .broadcast_job import BroadcastJob
from .process_handle import ProcessHandle

__all__ = ["BroadcastJob", "ProcessHandle"]
