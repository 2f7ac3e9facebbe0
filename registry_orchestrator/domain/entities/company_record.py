import re
from dataclasses import dataclass, field
from datetime import date

IDENTIFIER_PATTERN = re.compile(r"^\d{9}$")


@dataclass
class CompanyRecord:
    """
    One business extracted from a single result card.

    Only ever built when both the display name and a 9-digit identifier were
    found; every other field is best-effort.
    """

    name: str
    identifier: str
    start_date: date | None = None
    representatives: list[str] = field(default_factory=list)
    legal_form: str = ""
    establishments: int = 1
    postal_code: str = ""
    city: str = ""
    address: str = ""
    status: str = "active"

    # Stamped by the extraction loop from the job filter
    category_code: str = ""
    region_code: str = ""

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValueError("Company record requires a name.")
        if not IDENTIFIER_PATTERN.match(self.identifier):
            raise ValueError(f"Invalid company identifier: {self.identifier!r}")
