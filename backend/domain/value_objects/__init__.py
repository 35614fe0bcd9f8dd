"""
Domain Value Objects

Value objects are immutable types that represent descriptive aspects of the domain.
They have no conceptual identity and are compared by their values, not by ID.

- StreamState: lifecycle state of a broadcast job
- Destination: platform + stream key pair
- ExternalJobNaming: stream id <-> external process manager job name mapping
"""
from .stream_state import StreamState
from .destination import Destination
from .external_name import ExternalJobNaming

__all__ = ["StreamState", "Destination", "ExternalJobNaming"]
