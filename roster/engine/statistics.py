"""
Statistics Engine - Activation coverage per category.

A pure function of (Catalog, ActivationState): nothing is read from or
written to disk, and the same inputs always give the same numbers.
Percentages are floor integers.
"""

from __future__ import annotations

from typing import Any, Dict, List

from roster.catalog.catalog import Catalog
from roster.core.models import ActivationState, Category, CategoryCount, RecommendationLevel

# Activation density bounds (percent of the catalog)
LEAN_THRESHOLD = 15
HEAVY_THRESHOLD = 75

# Per-category advice bounds
LOW_THRESHOLD = 40
GOOD_THRESHOLD = 80

# Rough prompt context cost
BASE_CONTEXT_TOKENS = 5000
TOKENS_PER_CAPABILITY = 200


class StatisticsEngine:
    """
    Compute activation statistics.

    Usage:
        stats = StatisticsEngine(catalog, session.active)
        stats.overall_rate()            # 66
        stats.recommendation("frontend")  # RecommendationLevel.LOW
    """

    def __init__(self, catalog: Catalog, active: ActivationState):
        self.catalog = catalog
        self.active = active

    def per_category_counts(self) -> Dict[Category, CategoryCount]:
        """Active/total per category, in category order."""
        counts = {}
        for category in self.catalog.categories():
            ids = self.catalog.ids_in(category)
            counts[category] = CategoryCount(
                active=len(ids & self.active.ids),
                total=len(ids),
            )
        return counts

    def active_known_count(self) -> int:
        return len(self.active.known(self.catalog))

    def overall_rate(self) -> int:
        """Floor percentage of catalog capabilities that are active."""
        total = len(self.catalog)
        if total == 0:
            return 0
        return self.active_known_count() * 100 // total

    def recommendation(self, category) -> RecommendationLevel:
        if not isinstance(category, Category):
            category = Category.parse(category)
        count = self.per_category_counts().get(category, CategoryCount(0, 0))
        percentage = count.percentage

        if category.is_baseline:
            if count.total and count.active == count.total:
                return RecommendationLevel.GOOD
            return RecommendationLevel.CRITICAL

        if percentage == 0:
            return RecommendationLevel.NONE
        if percentage < LOW_THRESHOLD:
            return RecommendationLevel.LOW
        if percentage >= GOOD_THRESHOLD:
            return RecommendationLevel.GOOD
        return RecommendationLevel.BALANCED

    def missing_baseline(self) -> List[str]:
        return sorted(self.catalog.baseline_ids() - self.active.ids)

    def unknown_ids(self) -> List[str]:
        return self.active.unknown(self.catalog)

    def density_advice(self) -> str:
        """'lean', 'heavy' or 'balanced' for the overall rate."""
        rate = self.overall_rate()
        if rate < LEAN_THRESHOLD:
            return "lean"
        if rate > HEAVY_THRESHOLD:
            return "heavy"
        return "balanced"

    def context_estimate(self) -> int:
        """Approximate prompt tokens consumed by the active set."""
        return BASE_CONTEXT_TOKENS + TOKENS_PER_CAPABILITY * self.active_known_count()

    def performance_impact(self) -> str:
        active = self.active_known_count()
        if active <= 15:
            return "minimal"
        if active <= 30:
            return "low"
        if active <= 50:
            return "moderate"
        return "high"

    def summary(self) -> Dict[str, Any]:
        """Everything above as one JSON-ready dict."""
        return {
            "active": self.active_known_count(),
            "total": len(self.catalog),
            "rate": self.overall_rate(),
            "density": self.density_advice(),
            "context_tokens": self.context_estimate(),
            "performance": self.performance_impact(),
            "missing_baseline": self.missing_baseline(),
            "unknown": self.unknown_ids(),
            "categories": {
                category.value: {
                    "label": category.label,
                    "active": count.active,
                    "total": count.total,
                    "percentage": count.percentage,
                    "recommendation": self.recommendation(category).value,
                }
                for category, count in self.per_category_counts().items()
            },
        }
