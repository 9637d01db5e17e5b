"""JSON-file-backed implementation of RegionDirectory."""

from __future__ import annotations

import json
from pathlib import Path

from storefront.domain.exceptions import PersistenceError
from storefront.domain.repository.region_directory import RegionDirectory


class JsonRegionDirectory(RegionDirectory):
    """Regions as ``[{"region_id", "country_id", "code", "name"}, ...]``."""

    def __init__(self, file_path: Path) -> None:
        self._file_path = file_path

    def resolve(self, state: str, country: str) -> int | None:
        wanted = state.strip().lower()
        regions = [
            r for r in self._load_raw()
            if str(r.get("country_id", "")).upper() == country.strip().upper()
        ]
        # names win over codes
        for key in ("name", "code"):
            for region in regions:
                if str(region.get(key, "")).lower() == wanted:
                    return int(region["region_id"])
        return None

    def _load_raw(self) -> list[dict]:
        if not self._file_path.exists():
            return []
        try:
            return json.loads(self._file_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"Cannot read {self._file_path}: {exc}") from exc
