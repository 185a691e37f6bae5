"""File transport - replay readings captured to disk.

Accepted layouts:

- a JSON array of records,
- JSON lines (one record per line, blank lines ignored),
- a saved ``listSensorsData`` response (``{"items": [...]}`` or the full
  ``{"data": {"listSensorsData": {"items": [...]}}}`` envelope).
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from sensor_stream.transports.memory import ListPager

__all__ = ["FilePager", "load_records"]

logger = logging.getLogger("sensor_stream.transports.file")


def _unwrap(payload: Any) -> list[Any]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        if "data" in payload and isinstance(payload["data"], dict):
            payload = payload["data"].get("listSensorsData") or {}
        items = payload.get("items")
        if isinstance(items, list):
            return items
        return [payload]
    raise ValueError(f"Unsupported JSON document of type {type(payload).__name__}")


def load_records(path: str | Path) -> list[Any]:
    """Read raw records from a JSON or JSON-lines file.

    Records are returned as parsed; validation happens in the normalizer.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Readings file not found: {path}")

    text = path.read_text(encoding="utf-8")
    try:
        records = _unwrap(json.loads(text)) if text.strip() else []
    except json.JSONDecodeError:
        records = []
        for line_number, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError as exc:
                raise ValueError(f"{path}:{line_number}: invalid JSON ({exc.msg})") from exc

    logger.info("Loaded %d raw records from %s", len(records), path)
    return records


class FilePager(ListPager):
    """:class:`ListPager` over the records of a file."""

    def __init__(self, path: str | Path, page_size: int = 1000) -> None:
        self.path = Path(path)
        super().__init__(load_records(self.path), page_size=page_size)
