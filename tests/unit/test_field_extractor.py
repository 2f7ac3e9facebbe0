"""Unit tests for the field extractor, run against fixture HTML."""
from datetime import date

import pytest
from bs4 import BeautifulSoup

from registry_orchestrator.application.scraping.field_extractor import (
    extract_card,
    parse_establishments,
    parse_identifier,
    parse_location,
    parse_page,
    parse_start_date,
    parse_total_results,
)
from scraping_fakes import company_card, no_results_page, results_page, valid_cards


def _card(html: str):  # type: ignore[no-untyped-def]
    return BeautifulSoup(html, "html.parser").select_one(".company-result, [data-company]")


class TestParseStartDate:
    def test_both_formats_give_the_same_date(self) -> None:
        assert parse_start_date("15/01/2020") == parse_start_date("2020-01-15") == date(2020, 1, 15)

    def test_date_embedded_in_text(self) -> None:
        assert parse_start_date("Début d'activité : 03/07/1999") == date(1999, 7, 3)

    def test_impossible_date_is_none(self) -> None:
        assert parse_start_date("31/02/2020") is None

    def test_missing_date_is_none(self) -> None:
        assert parse_start_date("") is None
        assert parse_start_date("depuis longtemps") is None


class TestParseIdentifier:
    def test_plain_nine_digits(self) -> None:
        assert parse_identifier("SIREN 552100554") == "552100554"

    def test_spaced_digit_groups_are_joined(self) -> None:
        assert parse_identifier("552 100 554") == "552100554"
        assert parse_identifier("552\u00a0100\u00a0554") == "552100554"

    def test_eight_digits_rejected(self) -> None:
        assert parse_identifier("55210055") == ""

    def test_siret_yields_its_siren(self) -> None:
        assert parse_identifier("SIRET 55210055400013") == "552100554"
        assert parse_identifier("552 100 554 00013") == "552100554"


class TestParseLocation:
    def test_postal_code_then_city(self) -> None:
        assert parse_location("75008 Paris") == ("75008", "Paris")

    def test_city_then_bracketed_postal_code(self) -> None:
        assert parse_location("Saint-Denis (93200)") == ("93200", "Saint-Denis")

    def test_no_postal_code(self) -> None:
        assert parse_location("Paris") == ("", "")


class TestCounts:
    def test_establishments_first_integer(self) -> None:
        assert parse_establishments("3 établissements") == 3

    def test_establishments_default_is_one(self) -> None:
        assert parse_establishments("") == 1
        assert parse_establishments("aucun") == 1

    def test_total_results_with_grouping(self) -> None:
        assert parse_total_results("1 234 résultats") == 1234

    def test_total_results_absent(self) -> None:
        assert parse_total_results(None) == 0


class TestExtractCard:
    def test_full_card(self) -> None:
        card = _card(
            company_card(
                "ACME SAS",
                "552 100 554",
                start_date="15/01/2020",
                representatives=("Jean Dupont", "Marie Curie", "Jean Dupont"),
                legal_form="SAS",
                address="12 rue de la Paix",
                location="75002 Paris",
                establishments="2 établissements",
            )
        )
        record = extract_card(card)

        assert record is not None
        assert record.name == "ACME SAS"
        assert record.identifier == "552100554"
        assert record.start_date == date(2020, 1, 15)
        assert record.representatives == ["Jean Dupont", "Marie Curie"]
        assert record.legal_form == "SAS"
        assert record.address == "12 rue de la Paix"
        assert record.postal_code == "75002"
        assert record.city == "Paris"
        assert record.establishments == 2
        assert record.status == "active"

    def test_minimal_card_uses_defaults(self) -> None:
        record = extract_card(_card(company_card("ACME", "552100554")))
        assert record is not None
        assert record.start_date is None
        assert record.representatives == []
        assert record.establishments == 1
        assert record.postal_code == ""

    def test_identifier_from_card_data_attribute(self) -> None:
        html = '<div data-company data-siren="552100554"><span class="denomination">ACME</span></div>'
        record = extract_card(_card(html))
        assert record is not None
        assert record.identifier == "552100554"
        assert record.name == "ACME"

    def test_missing_identifier_skipped(self) -> None:
        assert extract_card(_card(company_card("ACME", None))) is None

    def test_malformed_identifier_skipped(self) -> None:
        assert extract_card(_card(company_card("ACME", "55210055"))) is None

    def test_siret_on_card_is_reduced_to_siren(self) -> None:
        record = extract_card(_card(company_card("ACME", "552 100 554 00013")))
        assert record is not None
        assert record.identifier == "552100554"

    def test_missing_name_skipped(self) -> None:
        assert extract_card(_card(company_card(None, "552100554"))) is None


class TestParsePage:
    def test_no_results_marker(self) -> None:
        snapshot = parse_page(no_results_page())
        assert snapshot.has_no_results_marker is True
        assert snapshot.records == []

    def test_invalid_cards_are_skipped(self) -> None:
        cards = valid_cards(3) + [
            company_card("No Id", None),
            company_card("Short Id", "12345678"),
        ]
        snapshot = parse_page(results_page(cards, total=5))

        assert snapshot.has_results_container is True
        assert snapshot.total_results == 5
        assert len(snapshot.records) == 3
        assert snapshot.skipped_cards == 2
        for record in snapshot.records:
            assert record.name
            assert len(record.identifier) == 9 and record.identifier.isdigit()
        assert "No Id" not in {record.name for record in snapshot.records}
        assert "Short Id" not in {record.name for record in snapshot.records}

    @pytest.mark.parametrize("has_next", [True, False])
    def test_next_control_detection(self, has_next: bool) -> None:
        snapshot = parse_page(results_page(valid_cards(1), has_next=has_next))
        assert snapshot.has_next_page is has_next

    def test_missing_count_is_zero(self) -> None:
        assert parse_page(results_page(valid_cards(2))).total_results == 0

    def test_page_without_container(self) -> None:
        snapshot = parse_page("<html><body><p>Maintenance</p></body></html>")
        assert snapshot.has_results_container is False
        assert snapshot.has_no_results_marker is False
