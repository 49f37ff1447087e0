"""
scheduler.py: When to regenerate codes.

All functions take `now` explicitly, so they are pure and testable without
touching the clock. Windows are anchored on Unix-epoch boundaries
(`now mod period == 0`); entries sharing a period roll over together, and an
entry with its own period rolls over on its own boundary.
"""

import logging
import math
from collections import Counter
from typing import FrozenSet, List, Optional, Tuple

from authenticator.models import DEFAULT_TIME_STEP, GeneratedCode, InvalidParameter, Vault, VaultEntry
from authenticator.otp_core import T0, generate

logger = logging.getLogger(__name__)


def window_start(now: float, period: int, t0: int = T0) -> int:
    return t0 + ((math.floor(now) - t0) // period) * period


def next_boundary(now: float, period: int, t0: int = T0) -> int:
    return window_start(now, period, t0) + period


def seconds_until_next_boundary(now: float, period: int, t0: int = T0) -> float:
    """Seconds left in the current window; in (0, period]."""
    return next_boundary(now, period, t0) - now


def dominant_period(vault: Vault) -> int:
    """Most common period in the vault (smallest on ties); 30s for an empty vault."""
    periods = Counter(entry.period for entry in vault if _usable_period(entry.period))
    if not periods:
        return DEFAULT_TIME_STEP
    best = max(periods.values())
    return min(period for period, count in periods.items() if count == best)


def _usable_period(period) -> bool:
    return isinstance(period, int) and not isinstance(period, bool) and period > 0


def next_refresh(vault: Vault, now: float, t0: int = T0) -> Tuple[int, FrozenSet[int]]:
    """
    Next instant at which some entry's code changes.

    Returns:
        (wake_at, periods_due), the earliest boundary over all distinct
        periods, and every period whose window rolls over at that instant.
        An empty vault still gets the default 30s countdown.
    """
    periods = {entry.period for entry in vault if _usable_period(entry.period)}
    if not periods:
        periods = {DEFAULT_TIME_STEP}
    boundaries = {period: next_boundary(now, period, t0) for period in periods}
    wake_at = min(boundaries.values())
    return wake_at, frozenset(p for p, b in boundaries.items() if b == wake_at)


def entries_due(vault: Vault, periods_due: FrozenSet[int]) -> List[VaultEntry]:
    """
    Entries to regenerate at a boundary. When the dominant period rolls over
    the whole vault is regenerated in one pass.
    """
    if dominant_period(vault) in periods_due:
        return list(vault)
    return [entry for entry in vault if entry.period in periods_due]


def regenerate(vault: Vault, now: float, t0: int = T0) -> List[Tuple[VaultEntry, Optional[GeneratedCode]]]:
    """
    Full regeneration pass, one result per entry in vault order.

    A malformed entry yields None for this window instead of aborting the pass.
    """
    results = []
    for entry in vault:
        try:
            code = generate(entry, now, t0)
        except InvalidParameter as e:
            logger.warning("Skipping %s: %s", entry.label, e)
            code = None
        results.append((entry, code))
    logger.debug("Regenerated %d codes at %s", len(results), math.floor(now))
    return results
