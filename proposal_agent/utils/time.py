from __future__ import annotations

from datetime import datetime, timezone


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")


def epoch_millis() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def today_label() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")
