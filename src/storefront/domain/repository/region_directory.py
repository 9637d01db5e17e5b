"""Abstract lookup of state/province identifiers."""

from __future__ import annotations

from abc import ABC, abstractmethod


class RegionDirectory(ABC):

    @abstractmethod
    def resolve(self, state: str, country: str) -> int | None:
        """Return the region id for a state name or code within a country."""
