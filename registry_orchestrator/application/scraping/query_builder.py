"""
Search locator construction.

The parameter names and their order are dictated by the directory's search
endpoint. Bump QUERY_SCHEMA_VERSION whenever the encoding changes so cached
locators can be invalidated.
"""
from urllib.parse import urlencode

from registry_orchestrator.domain.entities.scrape_filter import ScrapeFilter

QUERY_SCHEMA_VERSION = 1

CATEGORY_PARAM = "activite_principale"
REGION_PARAM = "departement"
PRIMARY_SITE_PARAM = "siege_social"


def build_search_url(base_url: str, scrape_filter: ScrapeFilter) -> str:
    """Return the canonical search locator for a filter. Same filter, same URL."""
    params: list[tuple[str, str]] = [
        (CATEGORY_PARAM, scrape_filter.category_code),
        (REGION_PARAM, scrape_filter.region_code),
    ]
    if scrape_filter.primary_site_only:
        params.append((PRIMARY_SITE_PARAM, "true"))

    return f"{base_url.rstrip('/')}?{urlencode(params)}"
