from __future__ import annotations

import os

DEFAULT_WINDOW_MONTHS = 12


def rebuild_window_months() -> int:
    raw = os.getenv("LEDGER_WINDOW_MONTHS")
    if raw is None or not raw.strip():
        return DEFAULT_WINDOW_MONTHS
    try:
        months = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"LEDGER_WINDOW_MONTHS must be an integer, got {raw!r}.") from exc
    if months < 1:
        raise RuntimeError("LEDGER_WINDOW_MONTHS must be at least 1.")
    return months


def snapshots_enabled() -> bool:
    return os.getenv("LEDGER_SNAPSHOTS_ENABLED") != "0"


def allow_demo_reset() -> bool:
    return os.getenv("LEDGER_ALLOW_RESET") == "1"
