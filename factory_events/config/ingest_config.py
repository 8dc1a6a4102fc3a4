from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "ingest.yaml"


@dataclass(frozen=True)
class IngestConfig:
    raw: Dict[str, Any]

    def _section(self, name: str) -> Dict[str, Any]:
        if not isinstance(self.raw, dict):
            return {}
        return dict(self.raw.get(name) or {})

    def max_duration_ms(self) -> int:
        hours = float(self._section("validation").get("max_duration_hours", 6))
        return int(hours * 60 * 60 * 1000)

    def max_future_minutes(self) -> int:
        return int(self._section("validation").get("max_future_minutes", 15))

    def warning_defect_rate(self) -> float:
        return float(self._section("health").get("warning_defect_rate", 2.0))

    def top_lines_default_limit(self) -> int:
        return int(self._section("queries").get("top_lines_default_limit", 10))

    def top_lines_max_limit(self) -> int:
        return int(self._section("queries").get("top_lines_max_limit", 1000))

    def events_default_limit(self) -> int:
        return int(self._section("queries").get("events_default_limit", 100))

    def lookup_chunk_size(self) -> int:
        # Keeps IN (...) lists under driver parameter limits.
        return max(1, int(self._section("store").get("lookup_chunk_size", 500)))


_cached: Optional[IngestConfig] = None


def load_ingest_config(path: Path | None = None) -> IngestConfig:
    """
    Loads the YAML config once per process.

    An explicit path always reads that file and bypasses the cache;
    FACTORY_INGEST_CONFIG overrides the packaged default.
    """
    global _cached
    if path is not None:
        return _read(path)

    if _cached is not None:
        return _cached

    env_path = os.getenv("FACTORY_INGEST_CONFIG", "").strip()
    _cached = _read(Path(env_path) if env_path else DEFAULT_CONFIG_PATH)
    return _cached


def _read(p: Path) -> IngestConfig:
    data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    return IngestConfig(raw=data)
