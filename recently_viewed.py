"""
Recently viewed products: a most-recent-first list capped at MAX_ITEMS,
persisted whole under the ``recentlyViewed`` key on every write.
"""
import logging
from typing import Callable, List

from pydantic import TypeAdapter

from schemas import Product, RecentlyViewedEntry, utcnow
from storage import RECENTLY_VIEWED_KEY, load_records, save_records

logger = logging.getLogger(__name__)

MAX_ITEMS = 10

entries_adapter = TypeAdapter(List[RecentlyViewedEntry])


class RecentlyViewed:
    def __init__(self, storage, clock: Callable = utcnow, max_items: int = MAX_ITEMS):
        self.storage = storage
        self.clock = clock
        self.max_items = max_items

    def list(self) -> List[RecentlyViewedEntry]:
        return load_records(self.storage, RECENTLY_VIEWED_KEY, entries_adapter)

    def _save(self, entries: List[RecentlyViewedEntry]) -> List[RecentlyViewedEntry]:
        save_records(self.storage, RECENTLY_VIEWED_KEY, entries_adapter, entries)
        return entries

    def record(self, product: Product) -> List[RecentlyViewedEntry]:
        entry = RecentlyViewedEntry(
            id=product.id,
            name=product.name,
            image=product.image,
            price=product.price,
            brand=product.brand,
            category=product.category,
            viewed_at=self.clock(),
        )
        others = [e for e in self.list() if e.id != entry.id]
        return self._save([entry, *others][: self.max_items])

    def remove(self, product_id: str) -> List[RecentlyViewedEntry]:
        return self._save([e for e in self.list() if e.id != str(product_id)])

    def clear(self) -> List[RecentlyViewedEntry]:
        self.storage.remove_item(RECENTLY_VIEWED_KEY)
        logger.debug("Cleared recently viewed products")
        return []
