"""
Destination Value Object

Immutable (platform, stream key) pair a broadcast is pushed to.
"""

from dataclasses import dataclass

from constants import Platform


@dataclass(frozen=True)
class Destination:
    """
    One ingest target.

    The key is treated as an opaque credential: it is only ever placed in an
    argument vector and never logged.
    """

    platform: Platform
    key: str

    def __post_init__(self):
        """Normalise the platform into the enum."""
        if not isinstance(self.platform, Platform):
            try:
                object.__setattr__(self, "platform", Platform(str(self.platform).strip().lower()))
            except ValueError:
                raise ValueError(
                    f"Unsupported platform: {self.platform!r} "
                    f"(expected one of {', '.join(Platform.values())})"
                )

    def has_key(self) -> bool:
        """True when a non-blank stream key is present."""
        return bool(self.key and self.key.strip())

    def ingest_url(self) -> str:
        """Full RTMP URL for this destination."""
        return Platform.ingest_template(self.platform).format(key=self.key.strip())

    def __repr__(self) -> str:
        # Keep stream keys out of logs and tracebacks
        return f"Destination(platform={self.platform.value!r}, key='***')"
