"""Tests for printing deduplication and representative selection."""

import itertools
from typing import Any

import pytest

from manabase.models.card import CardPrinting, parse_printing
from manabase.services.dedup import (
    collector_number_value,
    deduplicate,
    group_key,
    group_printings,
    is_displayable,
    select_representative,
)
from tests.factories import make_raw_card


def printing(name: str = "Llanowar Elves", **overrides: Any) -> CardPrinting:
    return parse_printing(make_raw_card(name, **overrides))


class TestTieBreak:
    def test_secret_lair_loses_same_day_tie(self) -> None:
        """Newest wins; among the newest, the regular set beats Secret Lair."""
        secret_lair = printing(
            set="sld", set_name="Secret Lair Drop", collector_number="9", released_at="2023-03-10"
        )
        regular = printing(
            set="dmu", set_name="Dominaria United", collector_number="5", released_at="2023-03-10"
        )
        older = printing(
            set="m21", set_name="Core Set 2021", collector_number="300", released_at="2021-06-01"
        )

        assert select_representative([secret_lair, regular, older]) == regular

    @pytest.mark.parametrize(
        "order",
        list(itertools.permutations(range(4))),
    )
    def test_choice_is_order_independent(self, order: tuple[int, ...]) -> None:
        members = [
            printing(set="sld", set_name="Secret Lair Drop", released_at="2023-03-10"),
            printing(set="dmu", collector_number="5", released_at="2023-03-10"),
            printing(set="dmu", collector_number="5a", released_at="2023-03-10", promo=True),
            printing(set="m21", released_at="2021-06-01"),
        ]
        expected = select_representative(members)

        assert select_representative([members[i] for i in order]) == expected

    def test_newest_release_wins(self) -> None:
        old = printing(set="m19", released_at="2018-07-13")
        new = printing(set="dmu", released_at="2022-09-09", promo=True)

        assert select_representative([old, new]) == new

    def test_missing_date_counts_as_oldest(self) -> None:
        undated = printing(set="xxx", released_at=None)
        dated = printing(set="lea", released_at="1993-08-05")

        assert select_representative([undated, dated]) == dated

    def test_secret_lair_by_set_name(self) -> None:
        by_name = printing(set="slu", set_name="Secret Lair: Ultimate Edition")
        regular = printing(set="m21")

        assert select_representative([by_name, regular]) == regular

    @pytest.mark.parametrize(
        "variant",
        [{"promo": True}, {"full_art": True}, {"border_color": "borderless"}],
    )
    def test_promo_variants_lose(self, variant: dict[str, Any]) -> None:
        special = printing(set="pm21", collector_number="999", **variant)
        regular = printing(set="m21", collector_number="1")

        assert select_representative([special, regular]) == regular

    def test_higher_collector_number_wins(self) -> None:
        low = printing(set="m21", collector_number="12")
        high = printing(set="m21", collector_number="250")

        assert select_representative([low, high]) == high

    def test_empty_after_exclusion(self) -> None:
        token = printing(layout="token")

        assert select_representative([token]) is None


class TestCollectorNumber:
    @pytest.mark.parametrize(
        ("number", "expected"),
        [("123", 123), ("123a", 123), ("★", 0), ("", 0), ("A-45", 0)],
    )
    def test_leading_integer(self, number: str, expected: int) -> None:
        assert collector_number_value(printing(collector_number=number)) == expected


class TestDisplayable:
    def test_tokens_excluded(self) -> None:
        assert not is_displayable(printing(layout="double_faced_token"))

    def test_art_series_excluded(self) -> None:
        assert not is_displayable(printing(layout="art_series"))

    def test_no_image_excluded(self) -> None:
        assert not is_displayable(printing(image_uris=None))

    def test_small_image_is_enough(self) -> None:
        assert is_displayable(printing(image_uris={"small": "https://img/small.jpg"}))

    def test_face_image_is_enough(self) -> None:
        raw = make_raw_card(
            "Delver of Secrets",
            layout="transform",
            image_uris=None,
            card_faces=[
                {"name": "Delver of Secrets", "image_uris": {"normal": "https://img/front.jpg"}},
                {"name": "Insectile Aberration", "image_uris": {"normal": "https://img/back.jpg"}},
            ],
        )

        assert is_displayable(parse_printing(raw))


class TestGrouping:
    def test_group_key_prefers_oracle_id(self) -> None:
        assert group_key(printing()) == "oracle-llanowar-elves"

    def test_group_key_falls_back_to_name(self) -> None:
        assert group_key(printing(oracle_id=None)) == "llanowar elves"

    def test_group_key_falls_back_to_id(self) -> None:
        assert group_key(printing(oracle_id=None, name="", id="abc")) == "abc"

    def test_reprints_share_a_group(self) -> None:
        groups = group_printings([printing(set="m19"), printing(set="m21"), printing("Forest")])

        assert len(groups) == 2
        assert len(groups["oracle-llanowar-elves"].members) == 2


class TestDeduplicate:
    def test_one_representative_per_card(self) -> None:
        catalog = [
            printing(set="m19", released_at="2018-07-13"),
            printing(set="dmu", released_at="2022-09-09"),
            printing("Sol Ring", set="c21", released_at="2021-04-23"),
            printing("Goblin", layout="token"),
        ]

        result = deduplicate(catalog)

        assert result.total == 4
        assert {(p.name, p.set) for p in result.representatives} == {
            ("Llanowar Elves", "dmu"),
            ("Sol Ring", "c21"),
        }
        assert [p.set for p in result.prints_by_key["oracle-llanowar-elves"]] == ["m19", "dmu"]

    def test_empty_catalog(self) -> None:
        result = deduplicate([])

        assert result.representatives == []
        assert result.total == 0
