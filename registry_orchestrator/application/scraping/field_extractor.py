"""
BeautifulSoup-based extraction over a captured page snapshot.

Nothing here touches the browser: the extraction loop hands over the HTML it
captured and gets back plain data, so the rules can be exercised against
fixture pages.
"""
import re
from dataclasses import dataclass, field
from datetime import date, datetime

import structlog
from bs4 import BeautifulSoup, Tag

from registry_orchestrator.application.scraping.site_schema import (
    CURRENT_SITE_SCHEMA,
    DirectorySiteSchema,
    FieldRule,
)
from registry_orchestrator.domain.entities.company_record import CompanyRecord

logger = structlog.get_logger(__name__)

# A SIRET (14 digits) starts with the 9-digit SIREN of its company
IDENTIFIER_REGEX = re.compile(r"(?<!\d)\d{9}")
DATE_REGEX = re.compile(r"(\d{2}/\d{2}/\d{4}|\d{4}-\d{2}-\d{2})")
POSTAL_CODE_REGEX = re.compile(r"(?<!\d)\d{5}(?!\d)")
INTEGER_REGEX = re.compile(r"\d+")
# "123 456 789" -> "123456789"; also handles non-breaking spaces
DIGIT_GROUP_SPACING = re.compile(r"(?<=\d)[ \u00a0\u202f](?=\d)")

DATE_FORMATS = ("%d/%m/%Y", "%Y-%m-%d")


@dataclass
class PageSnapshot:
    """What a rendered results page says about itself."""

    has_results_container: bool = False
    has_no_results_marker: bool = False
    total_results: int = 0
    records: list[CompanyRecord] = field(default_factory=list)
    has_next_page: bool = False
    skipped_cards: int = 0


# ---- Text helpers ------------------------------------------------------------

def _clean(text: str | None) -> str:
    return " ".join((text or "").split())


def _join_digit_groups(text: str) -> str:
    return DIGIT_GROUP_SPACING.sub("", text)


def _read(card: Tag, rule: FieldRule) -> list[str]:
    elements = [card] if rule.selector is None else card.select(rule.selector)
    values: list[str] = []
    for element in elements:
        if rule.attribute is not None:
            raw = element.get(rule.attribute)
            if isinstance(raw, list):
                raw = " ".join(raw)
        else:
            raw = element.get_text(" ", strip=True)
        value = _clean(raw)
        if value:
            values.append(value)
    return values


def first_text(card: Tag, rules: tuple[FieldRule, ...]) -> str:
    """First non-empty value produced by the rules, in rule order."""
    for rule in rules:
        values = _read(card, rule)
        if values:
            return values[0]
    return ""


def first_match(card: Tag, rules: tuple[FieldRule, ...], pattern: re.Pattern[str]) -> str:
    """First value, across the rules in order, containing a match of pattern."""
    for rule in rules:
        for value in _read(card, rule):
            match = pattern.search(_join_digit_groups(value))
            if match:
                return match.group(0)
    return ""


# ---- Field parsers -----------------------------------------------------------

def parse_identifier(text: str) -> str:
    match = IDENTIFIER_REGEX.search(_join_digit_groups(text or ""))
    return match.group(0) if match else ""


def parse_start_date(text: str | None) -> date | None:
    """Parse DD/MM/YYYY or YYYY-MM-DD found anywhere in the text."""
    if not text:
        return None
    match = DATE_REGEX.search(text)
    if not match:
        return None
    raw = match.group(0)
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(raw, fmt).date()
        except ValueError:
            continue
    return None


def parse_location(text: str) -> tuple[str, str]:
    """Split "75008 Paris" into ("75008", "Paris"). Returns empty strings when no postal code."""
    match = POSTAL_CODE_REGEX.search(text or "")
    if not match:
        return "", ""
    postal_code = match.group(0)
    # "Paris (75008)" leaves an empty pair of brackets behind
    remainder = re.sub(r"[()]", " ", text[: match.start()] + " " + text[match.end():])
    return postal_code, _clean(remainder).strip(" ,-")


def parse_establishments(text: str) -> int:
    match = INTEGER_REGEX.search(_join_digit_groups(text or ""))
    return int(match.group(0)) if match else 1


def parse_total_results(text: str | None) -> int:
    match = INTEGER_REGEX.search(_join_digit_groups(text or ""))
    return int(match.group(0)) if match else 0


def collect_representatives(card: Tag, rules: tuple[FieldRule, ...]) -> list[str]:
    names: list[str] = []
    for rule in rules:
        for value in _read(card, rule):
            if value not in names:
                names.append(value)
    return names


# ---- Card / page extraction --------------------------------------------------

def extract_card(
    card: Tag, schema: DirectorySiteSchema = CURRENT_SITE_SCHEMA
) -> CompanyRecord | None:
    """Build a record from one result card, or None if name or identifier is missing."""
    name = first_text(card, schema.rules_for("name"))
    identifier = first_match(card, schema.rules_for("identifier"), IDENTIFIER_REGEX)
    if not name or not identifier:
        return None

    start_date_text = first_match(card, schema.rules_for("start_date"), DATE_REGEX)
    postal_code, city = "", ""
    for rule in schema.rules_for("location"):
        for value in _read(card, rule):
            postal_code, city = parse_location(value)
            if postal_code:
                break
        if postal_code:
            break

    establishments_text = first_text(card, schema.rules_for("establishments"))

    return CompanyRecord(
        name=name,
        identifier=identifier,
        start_date=parse_start_date(start_date_text),
        representatives=collect_representatives(card, schema.rules_for("representatives")),
        legal_form=first_text(card, schema.rules_for("legal_form")),
        establishments=parse_establishments(establishments_text),
        postal_code=postal_code,
        city=city,
        address=first_text(card, schema.rules_for("address")),
    )


def extract_records(
    soup: BeautifulSoup, schema: DirectorySiteSchema = CURRENT_SITE_SCHEMA
) -> tuple[list[CompanyRecord], int]:
    """Return (accepted records, skipped card count) for every card on the page."""
    records: list[CompanyRecord] = []
    skipped = 0
    for card in soup.select(schema.card):
        try:
            record = extract_card(card, schema)
        except Exception:
            logger.warning("card_extraction_failed", exc_info=True)
            record = None
        if record is None:
            skipped += 1
            continue
        records.append(record)
    return records, skipped


def parse_page(html: str, schema: DirectorySiteSchema = CURRENT_SITE_SCHEMA) -> PageSnapshot:
    """Turn a captured results page into a PageSnapshot."""
    soup = BeautifulSoup(html or "", "html.parser")

    if soup.select_one(schema.no_results_marker) is not None:
        return PageSnapshot(has_no_results_marker=True)

    count_element = soup.select_one(schema.results_count)
    total = parse_total_results(count_element.get_text(" ", strip=True)) if count_element else 0

    records, skipped = extract_records(soup, schema)
    return PageSnapshot(
        has_results_container=soup.select_one(schema.results_container) is not None,
        total_results=total,
        records=records,
        has_next_page=soup.select_one(schema.next_control) is not None,
        skipped_cards=skipped,
    )
