from __future__ import annotations
import logging
from typing import Iterable, Optional

from database import RemoteQueryError, RemoteStore
from schemas import CategoryFilter, Product

logger = logging.getLogger(__name__)


def filter_products(products: Iterable[Product], category: CategoryFilter) -> list[Product]:
    """Products in ``category`` in their original order; ``all`` keeps everything."""
    category = CategoryFilter(category)
    if category is CategoryFilter.all:
        return list(products)
    return [p for p in products if p.category.value == category.value]


class Catalog:
    """Products fetched for one session, ordered by descending popularity."""

    def __init__(self) -> None:
        self.products: list[Product] = []
        self.loading = False
        self.loaded = False

    async def load(self, store: RemoteStore) -> list[Product]:
        self.loading = True
        try:
            self.products = await store.fetch_products()
            self.loaded = True
        except RemoteQueryError:
            logger.exception("Error fetching products")
            self.products = []
        finally:
            self.loading = False
        return self.products

    def visible(self, category: CategoryFilter = CategoryFilter.all) -> list[Product]:
        return filter_products(self.products, category)

    def get(self, product_id: str) -> Optional[Product]:
        for p in self.products:
            if p.id == product_id:
                return p
        return None
