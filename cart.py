"""
Cart state machine.

The module-level functions are pure transitions over a list of CartLine and
never touch storage. CartStore owns the current lines, is handed to every
consumer explicitly, and tells its subscribers after each committed change.
Each mutation reads, transitions and commits under ``CartStore.lock``;
CartStore.open wires the persister that writes the ``cart`` key.
"""
import logging
import threading
from typing import Callable, List, Optional

from pydantic import TypeAdapter

from errors import StorageCorruption, ValidationError
from schemas import CartLine, Product
from storage import CART_KEY, decode_records, save_records

logger = logging.getLogger(__name__)

CartLines = List[CartLine]
Listener = Callable[[CartLines], None]

lines_adapter = TypeAdapter(List[CartLine])


def _matches(line: CartLine, product_id: str, size: Optional[str]) -> bool:
    if size is not None:
        size = str(size)
    return line.id == str(product_id) and line.size == size


def _size_for(product: Product, size: Optional[str]) -> Optional[str]:
    if not product.sizes:
        return None
    if size is None or str(size) == "":
        raise ValidationError("size required", {"size": "Please select a size"})
    size = str(size)
    if size not in product.sizes:
        raise ValidationError(
            f"size {size} is not available for {product.name}",
            {"size": f"Size {size} is not available"},
        )
    return size


def add_line(lines: CartLines, product: Product, size: Optional[str] = None) -> CartLines:
    size = _size_for(product, size)
    if any(_matches(line, product.id, size) for line in lines):
        return [
            line.model_copy(update={"quantity": line.quantity + 1}) if _matches(line, product.id, size) else line
            for line in lines
        ]
    line = CartLine(
        id=product.id,
        name=product.name,
        price=product.price,
        brand=product.brand,
        image=product.image,
        size=size,
        quantity=1,
    )
    return [*lines, line]


def remove_line(lines: CartLines, product_id: str, size: Optional[str] = None) -> CartLines:
    return [line for line in lines if not _matches(line, product_id, size)]


def set_quantity(lines: CartLines, product_id: str, size: Optional[str], quantity: int) -> CartLines:
    quantity = max(1, int(quantity))
    return [
        line.model_copy(update={"quantity": quantity}) if _matches(line, product_id, size) else line
        for line in lines
    ]


def _step(lines: CartLines, product_id: str, size: Optional[str], delta: int) -> CartLines:
    return [
        line.model_copy(update={"quantity": max(1, line.quantity + delta)}) if _matches(line, product_id, size) else line
        for line in lines
    ]


def increment(lines: CartLines, product_id: str, size: Optional[str] = None) -> CartLines:
    return _step(lines, product_id, size, 1)


def decrement(lines: CartLines, product_id: str, size: Optional[str] = None) -> CartLines:
    return _step(lines, product_id, size, -1)


def subtotal(lines: CartLines) -> int:
    return sum(line.price * line.quantity for line in lines)


def item_count(lines: CartLines) -> int:
    return sum(line.quantity for line in lines)


def hydrate(raw: Optional[str]) -> CartLines:
    """Parse a persisted cart blob, degrading to an empty cart."""
    if raw is None:
        return []
    try:
        return decode_records(CART_KEY, raw, lines_adapter)
    except StorageCorruption as exc:
        logger.warning("Discarding corrupt cart", extra={"key": exc.key, "reason": exc.reason})
        return []


class CartStore:
    """Single-writer cart holding the current lines."""

    def __init__(self, lines: Optional[CartLines] = None):
        self._lines: CartLines = list(lines or [])
        self._listeners: List[Listener] = []
        self.lock = threading.RLock()

    @classmethod
    def open(cls, storage) -> "CartStore":
        store = cls(hydrate(storage.get_item(CART_KEY)))
        store.subscribe(lambda lines: save_records(storage, CART_KEY, lines_adapter, lines))
        return store

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _apply(self, transition, *args) -> CartLines:
        with self.lock:
            lines = transition(self._lines, *args)
            self._lines = lines
            for listener in list(self._listeners):
                listener(list(lines))
            return list(lines)

    @property
    def lines(self) -> CartLines:
        return list(self._lines)

    def is_empty(self) -> bool:
        return not self._lines

    def find(self, product_id: str, size: Optional[str] = None) -> Optional[CartLine]:
        return next((line for line in self._lines if _matches(line, product_id, size)), None)

    def add(self, product: Product, size: Optional[str] = None) -> CartLines:
        return self._apply(add_line, product, size)

    def remove(self, product_id: str, size: Optional[str] = None) -> CartLines:
        return self._apply(remove_line, product_id, size)

    def set_quantity(self, product_id: str, size: Optional[str], quantity: int) -> CartLines:
        return self._apply(set_quantity, product_id, size, quantity)

    def increment(self, product_id: str, size: Optional[str] = None) -> CartLines:
        return self._apply(increment, product_id, size)

    def decrement(self, product_id: str, size: Optional[str] = None) -> CartLines:
        return self._apply(decrement, product_id, size)

    def clear(self) -> CartLines:
        return self._apply(lambda lines: [])

    def subtotal(self) -> int:
        return subtotal(self._lines)
