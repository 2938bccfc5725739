"""
Detection Engine - Recommend capabilities from detected technology tags.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from roster.catalog.catalog import Catalog, normalize_tag
from roster.core.models import ActivationState, Recommendation

logger = logging.getLogger(__name__)


class DetectionEngine:
    """
    Match technology tags to capabilities that are not active yet.

    Tags come from a collaborator (see roster.engine.manifest); the
    tag -> capability table ships with the catalog. The engine only
    proposes, it never changes the active set.

    Usage:
        engine = DetectionEngine(catalog)
        for rec in engine.recommend(["react", "nextjs"], active):
            print(rec.capability_id, rec.reason)
    """

    def __init__(self, catalog: Catalog):
        self.catalog = catalog
        self._table: Dict[str, List[str]] = catalog.detection_table()

    def known_tags(self) -> List[str]:
        return list(self._table)

    def candidates(self, tag: str) -> List[str]:
        """
        Capability ids mapped to one tag.

        'vue.js'-style tags fall back to their stem when the full form
        is not in the table.
        """
        key = normalize_tag(tag)
        if key in self._table:
            return list(self._table[key])
        if key.endswith("js") and key[:-2] in self._table:
            return list(self._table[key[:-2]])
        return []

    def recommend(
        self,
        tags: Iterable[str],
        active: Optional[ActivationState] = None,
    ) -> List[Recommendation]:
        """
        Recommend inactive capabilities for the given tags.

        Args:
            tags: Detected technology tags, in scan order
            active: Current active set (nothing is treated as active if None)

        Returns:
            Recommendations in tag-scan order, then table order. A
            capability matched by several tags appears once, with the
            reason of the first tag that matched it.
        """
        active = active or ActivationState()
        seen = set()
        results: List[Recommendation] = []

        for tag in tags:
            matches = self.candidates(tag)
            if not matches:
                logger.debug(f"No capabilities mapped to tag '{tag}'")
                continue

            for capability_id in matches:
                if capability_id in seen or capability_id in active:
                    continue
                if capability_id not in self.catalog:
                    logger.warning(f"Detection table names unknown capability '{capability_id}'")
                    continue
                seen.add(capability_id)
                results.append(Recommendation(
                    capability_id=capability_id,
                    reason=f"Detected {tag} in project",
                    tag=tag,
                ))

        return results

    def explain(self, recommendation: Recommendation) -> str:
        """Generate explanation for a recommendation."""
        descriptor = self.catalog.get(recommendation.capability_id)
        lines = [
            f"Capability: {recommendation.capability_id}",
            f"Reason: {recommendation.reason}",
        ]
        if descriptor is not None:
            lines.append(f"Category: {descriptor.category.label}")
            if descriptor.description:
                lines.append(f"Description: {descriptor.description}")
        return "\n".join(lines)
