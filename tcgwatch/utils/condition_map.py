"""
TCG Watch — Condition & Edition Mapping

Total order over marketplace condition grades and the edition comparison
rules shared by the pricing engine and the acquisition rule engine.

Rank order (best → worst):
    NEAR MINT (5) > LIGHTLY PLAYED (4) > MODERATELY PLAYED (3)
    > HEAVILY PLAYED (2) > DAMAGED (1)
"""

from __future__ import annotations

import structlog

from tcgwatch.config import Condition, Edition

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Condition rank table
# ---------------------------------------------------------------------------

_CONDITION_RANK: dict[Condition, int] = {
    Condition.DAMAGED: 1,
    Condition.HEAVILY_PLAYED: 2,
    Condition.MODERATELY_PLAYED: 3,
    Condition.LIGHTLY_PLAYED: 4,
    Condition.NEAR_MINT: 5,
}


def condition_rank(condition: Condition | str) -> int:
    """
    Rank a condition grade; higher is better.

    Accepts the enum or its raw value in any case. Unknown grades rank 0,
    below DAMAGED, so they never satisfy a desired condition.
    """
    if isinstance(condition, Condition):
        return _CONDITION_RANK[condition]
    try:
        return _CONDITION_RANK[Condition(condition.strip().upper())]
    except ValueError:
        logger.debug("condition_rank_unknown_grade", condition=str(condition))
        return 0


def meets_condition(actual: Condition | str, desired: Condition | str) -> bool:
    """True if `actual` is at least as good as `desired`."""
    return condition_rank(actual) >= condition_rank(desired)


# ---------------------------------------------------------------------------
# Editions
# ---------------------------------------------------------------------------

_VARIANT_EDITIONS: dict[str, Edition] = {
    "1ST EDITION": Edition.FIRST_EDITION,
    "UNLIMITED": Edition.UNLIMITED,
    "LIMITED": Edition.LIMITED,
}


def map_variant_to_edition(variant: str) -> Edition:
    """
    Map a sales-history variant name onto an Edition.

    Case-insensitive; anything unrecognized (e.g. "Normal") maps to ANY.
    """
    return _VARIANT_EDITIONS.get(variant.strip().upper(), Edition.ANY)


def edition_matches(
    actual: Edition,
    desired: Edition,
    *,
    any_actual_matches: bool = False,
) -> bool:
    """
    Compare a listing/sale edition against the desired edition.

    A desired edition of ANY accepts everything. With any_actual_matches the
    comparison is symmetric, so an ANY listing or sale also satisfies a
    specific desired edition (pricing uses this; acquisition rules do not).
    """
    if desired == Edition.ANY or actual == desired:
        return True
    return any_actual_matches and actual == Edition.ANY
