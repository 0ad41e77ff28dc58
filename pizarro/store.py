"""JSON file store for the dashboard's inputs (record sets, goals and the colour map).

Only inputs are persisted. Every analysis is recomputed from them, so nothing
derived ever lands on disk.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import asdict, fields
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, Tuple, Type, Union

from pizarro.records import DOMAINS, RECORD_TYPES, SalesGoal

logger = logging.getLogger(__name__)

GOALS_FILE = "goals.json"
COLORS_FILE = "colors.json"


def _date_fields(record_type: Type) -> Tuple[str, ...]:
    # annotations are strings under postponed evaluation
    return tuple(f.name for f in fields(record_type) if "date" in str(f.type))


def _encode(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    return value


def record_to_dict(record: Any) -> Dict[str, Any]:
    return {k: _encode(v) for k, v in asdict(record).items()}


def record_from_dict(record_type: Type, raw: Dict[str, Any]) -> Any:
    known = {f.name for f in fields(record_type)}
    values = {k: v for k, v in raw.items() if k in known}
    for name in _date_fields(record_type):
        if values.get(name):
            values[name] = date.fromisoformat(str(values[name])[:10])
        elif name in values:
            values[name] = None
    return record_type(**values)


class JsonStore:
    def __init__(self, base_dir: Union[str, Path]):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, name: str) -> Path:
        return self.base_dir / name

    def _write(self, name: str, payload: Any) -> None:
        path = self._path(name)
        fd, tmp = tempfile.mkstemp(dir=self.base_dir, prefix=f".{name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, ensure_ascii=False)
            os.replace(tmp, path)
        except OSError:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        logger.debug("Wrote %s", path)

    def _read(self, name: str) -> Any:
        path = self._path(name)
        if not path.exists():
            return None
        try:
            with path.open(encoding="utf-8") as fh:
                return json.load(fh)
        except (OSError, json.JSONDecodeError):
            logger.warning("Ignoring unreadable store file %s", path, exc_info=True)
            return None

    # ---------------- Records ----------------
    def save_records(self, domain: str, records: Iterable[Any]) -> None:
        rows = [record_to_dict(r) for r in records]
        self._write(f"{domain}.json", rows)
        logger.info("Saved %d %s records", len(rows), domain)

    def load_records(self, domain: str) -> Tuple[Any, ...]:
        record_type = RECORD_TYPES[domain]
        raw = self._read(f"{domain}.json")
        if not isinstance(raw, list):
            return ()
        try:
            return tuple(record_from_dict(record_type, row) for row in raw)
        except (TypeError, ValueError):
            logger.warning("Ignoring corrupt %s records in %s", domain, self.base_dir, exc_info=True)
            return ()

    def load_all(self) -> Dict[str, Tuple[Any, ...]]:
        return {domain: self.load_records(domain) for domain in DOMAINS}

    # ---------------- Goals ----------------
    def save_goals(self, goals: Iterable[SalesGoal]) -> None:
        self._write(GOALS_FILE, [record_to_dict(g) for g in goals])

    def load_goals(self) -> Tuple[SalesGoal, ...]:
        raw = self._read(GOALS_FILE)
        if not isinstance(raw, list):
            return ()
        try:
            return tuple(record_from_dict(SalesGoal, row) for row in raw)
        except (TypeError, ValueError):
            logger.warning("Ignoring corrupt goals file in %s", self.base_dir, exc_info=True)
            return ()

    # ---------------- Colours ----------------
    def save_colors(self, colors: Dict[str, str]) -> None:
        self._write(COLORS_FILE, dict(colors))

    def load_colors(self) -> Dict[str, str]:
        raw = self._read(COLORS_FILE)
        if not isinstance(raw, dict):
            return {}
        return {str(k): str(v) for k, v in raw.items()}
