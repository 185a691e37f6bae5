"""Reading normalizer - turns loosely-typed raw records into :class:`Reading`.

The backend delivers records with optional, nullable and sometimes
string-encoded fields (``timestamp`` arrives as a string over GraphQL).
Normalization never raises: an unusable input yields a
:class:`MalformedReading` and the caller decides what to do with it.
"""

from __future__ import annotations

import collections
import logging
import math
import time
from collections.abc import Callable, Mapping
from typing import Any

from sensor_stream.models import MalformedReading, Reading

__all__ = ["Normalizer", "normalize"]

logger = logging.getLogger("sensor_stream.normalizer")

UNKNOWN_DEVICE = "unknown"

_FLOAT_FIELDS = ("temperature", "humidity", "battery_voltage", "field_2")


def _to_float(value: Any) -> float | None:
    # bool is an int subclass but never a measurement
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(result):
        return None
    return result


def _device_id(value: Any) -> str:
    if value is None:
        return UNKNOWN_DEVICE
    candidate = str(value).strip()
    return candidate or UNKNOWN_DEVICE


def normalize(
    raw: Any,
    *,
    received_at: float | None = None,
    now: float | None = None,
) -> Reading | MalformedReading:
    """Coerce *raw* into a canonical :class:`Reading`.

    Parameters:
        raw: A mapping of field names to values, or an existing
            :class:`Reading` (re-stamped with *received_at*).
        received_at: Wall-clock epoch seconds at which the record reached
            the core.  Defaults to ``time.time()``.  Any ``received_at``
            carried by *raw* is ignored.
        now: Epoch seconds used to synthesize a missing ``timestamp``
            (as integer milliseconds).  Defaults to *received_at*.
    """
    received_at = time.time() if received_at is None else received_at

    if isinstance(raw, Reading):
        return raw.model_copy(update={"received_at": received_at})

    if not isinstance(raw, Mapping):
        return MalformedReading(reason="not a record", raw=repr(raw)[:200])

    timestamp = _to_float(raw.get("timestamp"))
    if timestamp is None:
        clock = received_at if now is None else now
        timestamp = clock * 1000

    values: dict[str, float] = {}
    for name in _FLOAT_FIELDS:
        parsed = _to_float(raw.get(name))
        values[name] = 0.0 if parsed is None else parsed

    move_count = _to_float(raw.get("move_count"))
    move_count = 0 if move_count is None else max(0, int(move_count))

    return Reading(
        device_id=_device_id(raw.get("device_id")),
        timestamp=int(timestamp),
        received_at=received_at,
        move_count=move_count,
        **values,
    )


class Normalizer:
    """Stateful wrapper around :func:`normalize` that keeps rejection stats.

    Parameters:
        clock: Callable returning wall-clock epoch seconds; used to stamp
            ``received_at``.
        keep_rejected: How many recent rejections to keep for diagnostics.
    """

    def __init__(self, clock: Callable[[], float] = time.time, keep_rejected: int = 20) -> None:
        self._clock = clock
        self.malformed_count = 0
        self.recent_rejections: collections.deque[MalformedReading] = collections.deque(
            maxlen=keep_rejected,
        )

    def __call__(self, raw: Any) -> Reading | MalformedReading:
        result = normalize(raw, received_at=self._clock())
        if isinstance(result, MalformedReading):
            self.malformed_count += 1
            self.recent_rejections.append(result)
            logger.warning("Dropping malformed reading: %s (%s)", result.reason, result.raw)
        return result
