"""Category weight and label table.

Weights are relative: only categories present in a run contribute, and the
total is renormalized over those, so the table does not need to sum to 1.
Bump CATEGORY_TABLE_VERSION whenever a weight changes, since scores from
different table versions are not directly comparable.
"""

from dataclasses import dataclass

from .models import Category

CATEGORY_TABLE_VERSION = 1


@dataclass(frozen=True)
class CategoryInfo:
    """Scoring weight and display label for one category.

    Args:
        weight: Relative weight of the category in the total score.
        label: Human-readable category name.
    """

    weight: float
    label: str


CATEGORIES: dict[Category, CategoryInfo] = {
    Category.NETWORK: CategoryInfo(0.09, "Network Attacks"),
    Category.PHISHING: CategoryInfo(0.05, "Phishing Attacks"),
    Category.CLIENT_SIDE: CategoryInfo(0.09, "Client-Side Attacks"),
    Category.DOWNLOAD: CategoryInfo(0.05, "Download Attacks"),
    Category.PERSISTENCE: CategoryInfo(0.05, "Persistence Attacks"),
    # Includes the SharedArrayBuffer / Spectre checks
    Category.SIDE_CHANNEL: CategoryInfo(0.12, "Side-Channel Attacks"),
    Category.FINGERPRINTING: CategoryInfo(0.08, "Fingerprinting Attacks"),
    Category.CRYPTOJACKING: CategoryInfo(0.05, "Cryptojacking Attacks"),
    Category.PRIVACY: CategoryInfo(0.06, "Privacy Attacks"),
    Category.MEDIA: CategoryInfo(0.07, "Media Capture Attacks"),
    Category.STORAGE: CategoryInfo(0.04, "Storage Attacks"),
    Category.WORKER: CategoryInfo(0.07, "Worker Attacks"),
    Category.INJECTION: CategoryInfo(0.06, "Injection Attacks"),
    Category.COVERT: CategoryInfo(0.08, "Covert Channel Attacks"),
    Category.ADVANCED: CategoryInfo(0.04, "Advanced Exploitation"),
}
"""Weight and label for every category."""

CATEGORY_WEIGHTS: dict[str, float] = {c.value: info.weight for c, info in CATEGORIES.items()}
"""Category value -> weight, the default table used by the aggregator."""


def category_label(category: str) -> str:
    """Return the display label for a category, or the raw value if unknown."""
    try:
        return CATEGORIES[Category(category)].label
    except ValueError:
        return category
