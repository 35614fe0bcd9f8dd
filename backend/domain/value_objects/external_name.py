"""
ExternalJobNaming Value Object

Maps stream identifiers to job names in an external process manager and back.
"""

import re
from dataclasses import dataclass
from typing import Optional

SAFE_TOKEN = re.compile(r"^[A-Za-z0-9_-]+$")


@dataclass(frozen=True)
class ExternalJobNaming:
    """
    Naming convention for delegated jobs.

    Jobs are named ``prefix + stream_id`` and additionally tagged with a
    namespace, so a job only counts as ours when both the namespace and the
    prefix match. Stream ids never contain the characters the prefix could be
    confused with, which keeps the mapping bijective.
    """

    prefix: str
    namespace: str

    def __post_init__(self):
        if not self.prefix or not SAFE_TOKEN.match(self.prefix):
            raise ValueError(f"Invalid job prefix: {self.prefix!r}")
        if not self.namespace or not SAFE_TOKEN.match(self.namespace):
            raise ValueError(f"Invalid job namespace: {self.namespace!r}")

    def external_name(self, stream_id: str) -> str:
        """Job name used in the external manager for a stream id."""
        if not stream_id or not SAFE_TOKEN.match(stream_id):
            raise ValueError(f"Invalid stream id: {stream_id!r}")
        return f"{self.prefix}{stream_id}"

    def parse_stream_id(self, name: str, namespace: Optional[str] = None) -> Optional[str]:
        """
        Map an external job name back to its stream id.

        Args:
            name: Job name reported by the manager
            namespace: Namespace reported by the manager (None skips the check)

        Returns:
            The stream id, or None when the job is not one of ours
        """
        if namespace is not None and namespace != self.namespace:
            return None
        if not name or not name.startswith(self.prefix):
            return None
        stream_id = name[len(self.prefix):]
        if not stream_id or not SAFE_TOKEN.match(stream_id):
            return None
        return stream_id
