"""
Product taxonomy lookups.

Subscription products are recognized by their product type term. The term
ids differ per install, so they are resolved by slug at query time. A store
missing either term cannot have its subscription products classified;
callers treat that as "no subscription products" rather than an error.
"""

from abc import ABC, abstractmethod
from typing import Optional

import structlog

from .base import ProductTypeTerms
from .duckdb_backend import DuckDBBackend

logger = structlog.get_logger(__name__)

PRODUCT_TYPE_TAXONOMY = "product_type"
SUBSCRIPTION_SLUG = "subscription"
VARIABLE_SUBSCRIPTION_SLUG = "variable-subscription"


class TermResolver(ABC):
    """Resolves taxonomy term ids by slug."""

    @abstractmethod
    def term_id(self, slug: str, taxonomy: str) -> Optional[int]:
        """Return the id of the term with this slug, or None if absent."""
        pass

    def product_type_terms(self) -> Optional[ProductTypeTerms]:
        """
        Resolve both subscription product type terms.

        Returns:
            ProductTypeTerms, or None if either term is missing
        """
        subscription = self.term_id(SUBSCRIPTION_SLUG, PRODUCT_TYPE_TAXONOMY)
        variable_subscription = self.term_id(VARIABLE_SUBSCRIPTION_SLUG, PRODUCT_TYPE_TAXONOMY)

        if subscription is None or variable_subscription is None:
            logger.warning(
                "product_type_terms_missing",
                subscription=subscription,
                variable_subscription=variable_subscription,
            )
            return None

        return ProductTypeTerms(
            subscription=subscription,
            variable_subscription=variable_subscription,
        )


class DuckDBTermResolver(TermResolver):
    """Term lookups against the shared `terms` table."""

    def __init__(self, backend: DuckDBBackend):
        self.backend = backend

    def term_id(self, slug: str, taxonomy: str) -> Optional[int]:
        row = self.backend.fetch_one(
            "read_term_id",
            "SELECT term_id FROM terms WHERE slug = ? AND taxonomy = ? ORDER BY term_id LIMIT 1",
            [slug, taxonomy],
        )
        term_id = row.get("term_id")
        return int(term_id) if term_id is not None else None
