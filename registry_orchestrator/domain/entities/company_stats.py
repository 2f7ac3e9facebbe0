from dataclasses import dataclass, field

# Window for scraped_last_month.
RECENT_WINDOW_DAYS = 30


@dataclass
class CompanyStats:
    """Aggregate view of one owner's persisted companies."""

    total: int = 0
    scraped_last_month: int = 0
    # (code, count) pairs, largest first
    by_region: list[tuple[str, int]] = field(default_factory=list)
    by_category: list[tuple[str, int]] = field(default_factory=list)
