"""Telemetry normalizer.

Converts ThingsBoard time-series payloads ({key: [{"ts", "value"}, ...]}) into
an ordered list of chart-ready SeriesPoint objects.

Channels are aligned by sample index, not by timestamp: sample ``i`` of the
base channel is paired with sample ``i`` of every other channel. This assumes
ThingsBoard returns the keys in lockstep, which holds for devices that publish
all keys in one telemetry message.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from datetime import datetime
from typing import Any

from .models import SeriesPoint, TelemetryRecord
from .utils import coerce_timestamp, now_ms

_LOGGER = logging.getLogger(__name__)

# Preferred base channels, in order
BASE_CHANNEL_PREFERENCE = ("power", "energy", "voltage", "current")

LabelFormatter = Callable[[int], str]


def format_hour_minute(ts: int) -> str:
    """Label for the 24-hour view, e.g. ``14:05``."""
    return datetime.fromtimestamp(ts / 1000).strftime("%H:%M")


def format_month_day(ts: int) -> str:
    """Label for the 30-day view, e.g. ``Oct 19``."""
    moment = datetime.fromtimestamp(ts / 1000)
    return f"{moment.strftime('%b')} {moment.day}"


def to_number(value: Any) -> float | None:
    """Coerce an upstream value to a finite number, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def select_base_channel(records: TelemetryRecord) -> str | None:
    """Return the key that drives iteration, or None if every channel is empty."""
    for key in BASE_CHANNEL_PREFERENCE:
        if records.get(key):
            return key
    for key, samples in records.items():
        if samples:
            return key
    return None


def _pick(records: TelemetryRecord, key: str, index: int) -> float:
    samples = records.get(key) or []
    if index >= len(samples):
        return 0
    sample = samples[index]
    if not isinstance(sample, dict):
        return 0
    number = to_number(sample.get("value"))
    # Missing and unparsable readings collapse to 0
    return 0 if number is None else number


def normalize_series(
    records: TelemetryRecord | None,
    label_formatter: LabelFormatter = format_hour_minute,
) -> list[SeriesPoint]:
    """Normalize raw telemetry into chart-ready points.

    Args:
        records: Raw time-series payload, may be None or empty
        label_formatter: Converts a sample timestamp (ms) to a display label

    Returns:
        One SeriesPoint per base channel sample, in upstream order. Duplicate
        or out-of-order timestamps are passed through unchanged.

    """
    if not records:
        return []

    base_key = select_base_channel(records)
    if base_key is None:
        _LOGGER.debug("No telemetry channel has samples, returning empty series")
        return []

    base = records[base_key]
    points = []
    for index, sample in enumerate(base):
        ts = coerce_timestamp(sample.get("ts")) if isinstance(sample, dict) else None
        if ts is None:
            ts = now_ms()
        points.append(
            SeriesPoint(
                ts=ts,
                label=label_formatter(ts),
                power_w=_pick(records, "power", index),
                voltage_v=_pick(records, "voltage", index),
                current_a=_pick(records, "current", index),
                energy_kwh=_pick(records, "energy", index),
            )
        )

    if _LOGGER.isEnabledFor(logging.DEBUG):
        mismatched = [
            key
            for key, samples in records.items()
            if samples and len(samples) != len(base)
        ]
        _LOGGER.debug(
            "Normalized %d points (base channel: %s, length mismatch: %s)",
            len(points),
            base_key,
            ", ".join(mismatched) or "none",
        )

    return points


def latest_value(records: TelemetryRecord | None, key: str) -> float | None:
    """Return the most recent numeric value for a key, or None."""
    if not records:
        return None
    samples = records.get(key) or []
    if not samples or not isinstance(samples[0], dict):
        return None
    return to_number(samples[0].get("value"))


def latest_timestamp(records: TelemetryRecord | None) -> int | None:
    """Return the newest sample timestamp across all keys, or None."""
    if not records:
        return None
    timestamps = [
        ts
        for samples in records.values()
        for sample in samples or []
        if isinstance(sample, dict)
        and (ts := coerce_timestamp(sample.get("ts"))) is not None
    ]
    return max(timestamps) if timestamps else None
