"""Favourites for the current session; held in memory only."""
from typing import Dict, List

from schemas import Product


class Favourites:
    def __init__(self):
        self._items: Dict[str, Product] = {}

    def toggle(self, product: Product) -> bool:
        if product.id in self._items:
            del self._items[product.id]
            return False
        self._items[product.id] = product
        return True

    def contains(self, product_id: str) -> bool:
        return str(product_id) in self._items

    def list(self) -> List[Product]:
        return list(self._items.values())

    def clear(self) -> None:
        self._items.clear()
