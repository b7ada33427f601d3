"""
In-process product and benefit ID cache.

Read-mostly and eventually consistent: a stale or missing entry only costs an
extra remote lookup. One instance is shared by the synchronizer and the
request-time resolver.
"""

from __future__ import annotations

from collections.abc import Iterable

from kiosk.components.content_id import generate_content_id_candidates


def _normalise(content_id: str) -> str:
    return content_id.replace("\\", "/")


class ProductCache:
    def __init__(self) -> None:
        self._product_by_content: dict[str, str] = {}
        self._content_by_product: dict[str, str] = {}
        self._benefits: dict[tuple[str, str], str] = {}

    def set_product_mapping(
        self, content_id: str, product_id: str, *, canonical: bool = False
    ) -> None:
        """Map a content ID spelling to a product. The reverse map is first-write-wins unless canonical."""
        normalised = _normalise(content_id)
        self._product_by_content[normalised] = product_id
        if canonical or product_id not in self._content_by_product:
            self._content_by_product[product_id] = normalised

    def get_product_id_for_content(self, content_id: str) -> str | None:
        for candidate in generate_content_id_candidates(content_id):
            product_id = self._product_by_content.get(candidate)
            if product_id:
                return product_id
        return None

    def get_content_id_for_product(self, product_id: str) -> str | None:
        return self._content_by_product.get(product_id)

    def cache_product_mappings(
        self,
        canonical_id: str,
        product_id: str,
        additional_candidates: Iterable[str] | None = None,
    ) -> None:
        """Register the canonical ID and every alias spelling for a product."""
        self.set_product_mapping(canonical_id, product_id, canonical=True)

        candidates = list(generate_content_id_candidates(canonical_id))
        for candidate in additional_candidates or ():
            normalised = _normalise(candidate)
            if normalised not in candidates:
                candidates.append(normalised)

        for candidate in candidates:
            if candidate != canonical_id:
                self.set_product_mapping(candidate, product_id)

    def product_mappings(self) -> dict[str, str]:
        return dict(self._product_by_content)

    # --- Benefits ---

    def get_benefit_id(self, content_id: str, benefit_type: str = "custom") -> str | None:
        return self._benefits.get((_normalise(content_id), benefit_type))

    def set_benefit_id(
        self, content_id: str, benefit_id: str, benefit_type: str = "custom"
    ) -> None:
        self._benefits[(_normalise(content_id), benefit_type)] = benefit_id

    def clear(self) -> None:
        self._product_by_content.clear()
        self._content_by_product.clear()
        self._benefits.clear()
