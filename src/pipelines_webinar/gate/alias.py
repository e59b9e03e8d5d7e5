"""Versioned alias pointer with compare-and-swap updates."""

from __future__ import annotations

import threading
from dataclasses import dataclass


class StaleAliasError(Exception):
    """Raised when an alias update is based on an outdated revision."""


@dataclass(frozen=True)
class AliasSnapshot:
    """Immutable view of an alias at one revision.

    Attributes:
        version: Primary version receiving the remaining traffic.
        additional_version: Version receiving weighted traffic, if any.
        additional_weight: Share (0.0-1.0) routed to additional_version.
        revision: Monotonic counter bumped on every successful update.
    """

    version: str
    additional_version: str | None = None
    additional_weight: float = 0.0
    revision: int = 0

    def weight_of(self, version: str) -> float:
        """Return the share of traffic that reaches a given version."""
        if version == self.additional_version:
            return self.additional_weight
        if version == self.version:
            return 1.0 - self.additional_weight
        return 0.0

    def to_dict(self) -> dict[str, str | float | int | None]:
        """Convert to dictionary for serialization."""
        return {
            "version": self.version,
            "additional_version": self.additional_version,
            "additional_weight": self.additional_weight,
            "revision": self.revision,
        }


class VersionedAlias:
    """A named, mutable pointer from a stable name to a function version.

    All writes go through compare_and_swap so that a traffic shift can never
    overwrite a change it did not observe.
    """

    def __init__(self, name: str, version: str) -> None:
        self.name = name
        self._lock = threading.Lock()
        self._snapshot = AliasSnapshot(version=version)

    def snapshot(self) -> AliasSnapshot:
        with self._lock:
            return self._snapshot

    @property
    def version(self) -> str:
        return self.snapshot().version

    @property
    def revision(self) -> int:
        return self.snapshot().revision

    def compare_and_swap(
        self,
        expected_revision: int,
        version: str,
        additional_version: str | None = None,
        additional_weight: float = 0.0,
    ) -> AliasSnapshot:
        """Replace the alias routing if nobody else changed it first.

        Raises:
            StaleAliasError: If the alias revision differs from expected_revision.
            ValueError: If the weight is outside 0.0-1.0.
        """
        if not 0.0 <= additional_weight <= 1.0:
            raise ValueError(f"additional_weight must be between 0.0 and 1.0, got {additional_weight}")
        if additional_version is None or additional_weight == 0.0:
            additional_version, additional_weight = None, 0.0

        with self._lock:
            current = self._snapshot
            if current.revision != expected_revision:
                raise StaleAliasError(
                    f"Alias {self.name} is at revision {current.revision}, expected {expected_revision}"
                )
            self._snapshot = AliasSnapshot(
                version=version,
                additional_version=additional_version,
                additional_weight=additional_weight,
                revision=current.revision + 1,
            )
            return self._snapshot

    def route(self, expected_revision: int, old_version: str, new_version: str, percentage: float) -> AliasSnapshot:
        """Send `percentage` percent of traffic to new_version, the rest to old_version."""
        if percentage >= 100:
            return self.compare_and_swap(expected_revision, new_version)
        return self.compare_and_swap(
            expected_revision,
            old_version,
            additional_version=new_version,
            additional_weight=round(percentage / 100.0, 4),
        )

    def promote(self, expected_revision: int, version: str) -> AliasSnapshot:
        return self.compare_and_swap(expected_revision, version)

    def revert(self, expected_revision: int, version: str) -> AliasSnapshot:
        return self.compare_and_swap(expected_revision, version)
