import re
from dataclasses import dataclass

from registry_orchestrator.domain.errors import ValidationError

CATEGORY_CODE_PATTERN = re.compile(r"^\d{4}[A-Z]$")
REGION_CODE_PATTERN = re.compile(r"^(\d{2,3}|2[AB])$")


@dataclass(frozen=True)
class ScrapeFilter:
    """Search criteria for one scrape job."""

    category_code: str
    region_code: str
    primary_site_only: bool = True

    @classmethod
    def create(
        cls,
        *,
        category_code: str | None,
        region_code: str | None,
        primary_site_only: bool | None = True,
    ) -> "ScrapeFilter":
        """Normalise and validate raw input, raising ValidationError on bad codes."""
        category = (category_code or "").strip().upper()
        region = (region_code or "").strip().upper()

        if not category or not region:
            raise ValidationError("Category code and region code are required.")
        if not CATEGORY_CODE_PATTERN.match(category):
            raise ValidationError(
                f"Invalid category code {category_code!r} (expected format: 0000A)."
            )
        if not REGION_CODE_PATTERN.match(region):
            raise ValidationError(f"Invalid region code {region_code!r}.")

        return cls(
            category_code=category,
            region_code=region,
            primary_site_only=True if primary_site_only is None else bool(primary_site_only),
        )
