"""
StreamState Value Object

Immutable representation of a broadcast job's lifecycle state.
"""

from enum import Enum


class StreamState(str, Enum):
    """
    Lifecycle of a broadcast job.

    STARTING -> RUNNING -> STOPPING -> TERMINATED, with a direct
    STARTING/RUNNING -> TERMINATED edge when the process exits on its own.
    """

    STARTING = "STARTING"
    RUNNING = "RUNNING"
    STOPPING = "STOPPING"
    TERMINATED = "TERMINATED"

    def is_terminal(self) -> bool:
        """Check if this state is terminal (no further transitions)."""
        return self is StreamState.TERMINATED

    def is_active(self) -> bool:
        """Check if a job in this state is reported by List."""
        return self in {StreamState.STARTING, StreamState.RUNNING}

    def can_transition_to(self, new_state: "StreamState") -> bool:
        """
        Check if transition to new state is valid.

        Args:
            new_state: Target state

        Returns:
            True if transition is allowed
        """
        valid_transitions = {
            StreamState.STARTING: {StreamState.RUNNING, StreamState.TERMINATED},
            StreamState.RUNNING: {StreamState.STOPPING, StreamState.TERMINATED},
            StreamState.STOPPING: {StreamState.TERMINATED},
            StreamState.TERMINATED: set(),
        }

        return new_state in valid_transitions.get(self, set())

    @classmethod
    def from_string(cls, value: str) -> "StreamState":
        """
        Create StreamState from string value.

        Raises:
            ValueError: If value is not a valid state
        """
        try:
            return cls(value.upper())
        except (ValueError, AttributeError):
            raise ValueError(f"Invalid stream state: {value}")
