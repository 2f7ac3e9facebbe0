"""
Target-site contract for the business directory.

Each field maps to an ordered tuple of rules; the extractor tries them in
order and the first match wins. Markup changes on the directory should only
ever require a new schema version here.
"""
from dataclasses import dataclass, field


@dataclass(frozen=True)
class FieldRule:
    """
    One place to look for a field value.

    With no selector the card element itself is read. With an attribute the
    attribute value is read instead of the element's text.
    """

    selector: str | None
    attribute: str | None = None


def _text(*selectors: str) -> tuple[FieldRule, ...]:
    return tuple(FieldRule(selector) for selector in selectors)


@dataclass(frozen=True)
class DirectorySiteSchema:
    version: int
    results_container: str
    no_results_marker: str
    results_count: str
    card: str
    next_control: str
    fields: dict[str, tuple[FieldRule, ...]] = field(default_factory=dict)

    def rules_for(self, field_name: str) -> tuple[FieldRule, ...]:
        return self.fields.get(field_name, ())


SITE_SCHEMA_V1 = DirectorySiteSchema(
    version=1,
    results_container=".search-results",
    no_results_marker=".no-results",
    results_count=".results-count",
    card=".company-result, .result-item, .entreprise-item, [data-company]",
    next_control=".pagination .next:not(.disabled)",
    fields={
        "name": _text(".company-name", ".denomination", "h3", ".title", ".nom-entreprise"),
        "identifier": (
            FieldRule(".siren"),
            FieldRule("[data-siren]", attribute="data-siren"),
            FieldRule(None, attribute="data-siren"),
        ),
        "start_date": _text(".start-date", ".creation-date", ".date", ".debut-activite"),
        "representatives": _text(".representative", ".dirigeant", ".representant", ".dirigeants"),
        "legal_form": _text(".legal-form", ".forme-juridique", ".statut-juridique"),
        "address": _text(".address", ".adresse"),
        "location": _text(".location", ".ville", ".localisation"),
        "establishments": _text(".establishments", ".etablissements", ".nb-etablissements"),
    },
)

CURRENT_SITE_SCHEMA = SITE_SCHEMA_V1
