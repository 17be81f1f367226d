"""
TCG Watch — Condition & Edition Mapping Tests

Condition rank order, desired-condition checks, sales-variant mapping and
edition comparison.
"""

from __future__ import annotations

import pytest

from tcgwatch.config import Condition, Edition
from tcgwatch.utils.condition_map import (
    condition_rank,
    edition_matches,
    map_variant_to_edition,
    meets_condition,
)


class TestConditionRank:
    """NEAR MINT 5 … DAMAGED 1."""

    @pytest.mark.parametrize(
        ("condition", "rank"),
        [
            (Condition.NEAR_MINT, 5),
            (Condition.LIGHTLY_PLAYED, 4),
            (Condition.MODERATELY_PLAYED, 3),
            (Condition.HEAVILY_PLAYED, 2),
            (Condition.DAMAGED, 1),
        ],
    )
    def test_rank_table(self, condition: Condition, rank: int) -> None:
        assert condition_rank(condition) == rank

    def test_raw_strings_any_case(self) -> None:
        assert condition_rank("near mint") == 5
        assert condition_rank(" Lightly Played ") == 4

    def test_unknown_grade_ranks_below_damaged(self) -> None:
        assert condition_rank("Pristine") == 0
        assert condition_rank("Pristine") < condition_rank(Condition.DAMAGED)

    def test_order_is_strict(self) -> None:
        ranks = [condition_rank(c) for c in Condition]

        assert ranks == sorted(ranks, reverse=True)
        assert len(set(ranks)) == len(ranks)


class TestMeetsCondition:
    def test_equal_meets(self) -> None:
        assert meets_condition(Condition.MODERATELY_PLAYED, Condition.MODERATELY_PLAYED)

    def test_better_meets(self) -> None:
        assert meets_condition(Condition.NEAR_MINT, Condition.HEAVILY_PLAYED)

    def test_worse_fails(self) -> None:
        assert not meets_condition(Condition.DAMAGED, Condition.HEAVILY_PLAYED)

    def test_unknown_never_meets(self) -> None:
        assert not meets_condition("Pristine", Condition.DAMAGED)


class TestVariantMapping:
    @pytest.mark.parametrize(
        ("variant", "edition"),
        [
            ("1st Edition", Edition.FIRST_EDITION),
            ("1ST EDITION", Edition.FIRST_EDITION),
            ("Unlimited", Edition.UNLIMITED),
            ("limited", Edition.LIMITED),
            ("Normal", Edition.ANY),
            ("", Edition.ANY),
        ],
    )
    def test_map_variant(self, variant: str, edition: Edition) -> None:
        assert map_variant_to_edition(variant) == edition


class TestEditionMatches:
    def test_desired_any_accepts_everything(self) -> None:
        for edition in Edition:
            assert edition_matches(edition, Edition.ANY)

    def test_exact_match(self) -> None:
        assert edition_matches(Edition.LIMITED, Edition.LIMITED)

    def test_mismatch(self) -> None:
        assert not edition_matches(Edition.UNLIMITED, Edition.FIRST_EDITION)

    def test_actual_any_only_when_symmetric(self) -> None:
        assert not edition_matches(Edition.ANY, Edition.FIRST_EDITION)
        assert edition_matches(Edition.ANY, Edition.FIRST_EDITION, any_actual_matches=True)
