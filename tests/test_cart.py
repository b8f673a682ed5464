import json
import threading
import time

import pytest

from cart import (
    CartStore,
    add_line,
    decrement,
    hydrate,
    increment,
    item_count,
    remove_line,
    set_quantity,
    subtotal,
)
from errors import ValidationError
from schemas import CartLine
from storage import CART_KEY, MemoryStorage


def test_add_line_appends_new_line_with_quantity_one(product):
    lines = add_line([], product(), "42")

    assert len(lines) == 1
    line = lines[0]
    assert (line.id, line.size, line.quantity) == ("p1", "42", 1)
    assert (line.name, line.price, line.brand, line.image) == ("Air Runner", 20000, "Nike", "https://img.shop/air.jpg")


def test_adding_same_product_and_size_twice_increments_quantity(product):
    lines = add_line([], product(), "42")
    lines = add_line(lines, product(), "42")

    assert len(lines) == 1
    assert lines[0].quantity == 2


def test_same_product_different_sizes_are_separate_lines(product):
    lines = add_line([], product(), "41")
    lines = add_line(lines, product(), "42")

    assert [(l.size, l.quantity) for l in lines] == [("41", 1), ("42", 1)]


def test_size_is_required_when_product_has_sizes(product):
    with pytest.raises(ValidationError) as exc:
        add_line([], product())
    assert exc.value.message == "size required"
    assert "size" in exc.value.errors


def test_unknown_size_is_rejected(product):
    with pytest.raises(ValidationError):
        add_line([], product(), "47")


def test_numeric_size_matches_label(product):
    lines = add_line([], product(), 42)
    lines = add_line(lines, product(), "42")

    assert lines[0].size == "42"
    assert lines[0].quantity == 2


def test_product_without_sizes_ignores_size(product):
    slide = product(id="p2", sizes=[])
    lines = add_line([], slide, "42")
    lines = add_line(lines, slide)

    assert len(lines) == 1
    assert lines[0].size is None
    assert lines[0].quantity == 2


def test_transitions_do_not_mutate_their_input(product):
    original = add_line([], product(), "42")
    snapshot = [l.model_copy() for l in original]

    add_line(original, product(), "42")
    set_quantity(original, "p1", "42", 5)
    remove_line(original, "p1", "42")

    assert original == snapshot


def test_remove_line_missing_is_noop(product):
    lines = add_line([], product(), "42")

    assert remove_line(lines, "nope", "42") == lines
    assert remove_line(lines, "p1", "41") == lines
    assert remove_line(lines, "p1", "42") == []


@pytest.mark.parametrize("quantity", [0, -1, -50])
def test_set_quantity_clamps_to_one(product, quantity):
    lines = add_line([], product(), "42")

    lines = set_quantity(lines, "p1", "42", quantity)

    assert lines[0].quantity == 1


def test_stepper_decrement_never_goes_below_one(product):
    lines = add_line([], product(), "42")
    lines = increment(lines, "p1", "42")
    assert lines[0].quantity == 2

    lines = decrement(lines, "p1", "42")
    lines = decrement(lines, "p1", "42")
    assert lines[0].quantity == 1


def test_subtotal_matches_independent_sum(product):
    shoe = product()
    slide = product(id="p2", price=5000, sizes=[])
    heel = product(id="p3", price=95000, sizes=["38"])

    lines = []
    lines = add_line(lines, shoe, "42")
    lines = add_line(lines, slide)
    lines = add_line(lines, shoe, "42")
    lines = add_line(lines, heel, "38")
    lines = set_quantity(lines, "p2", None, 4)
    lines = remove_line(lines, "p3", "38")
    lines = set_quantity(lines, "p1", "42", -3)
    lines = add_line(lines, shoe, "41")

    expected = sum(l.price * l.quantity for l in lines)
    assert subtotal(lines) == expected == 20000 * 1 + 5000 * 4 + 20000
    assert item_count(lines) == 6


def test_hydrate_corrupt_text_returns_empty_cart():
    assert hydrate("{not json") == []


@pytest.mark.parametrize("raw", ["null", "{}", '"cart"', '[{"name": "no id"}]', '[{"id": "p1"}]', "[1, 2]"])
def test_hydrate_structurally_invalid_returns_empty_cart(raw):
    assert hydrate(raw) == []


def test_hydrate_accepts_lines_without_quantity():
    lines = hydrate(json.dumps([{"id": 1, "price": 20000}, {"id": "p2", "price": 5000, "quantity": 3}]))

    assert [(l.id, l.quantity) for l in lines] == [("1", 1), ("p2", 3)]


def test_store_persists_every_mutation(product):
    storage = MemoryStorage()
    store = CartStore.open(storage)

    store.add(product(), "42")
    assert json.loads(storage.get_item(CART_KEY))[0]["quantity"] == 1

    store.add(product(), "42")
    assert json.loads(storage.get_item(CART_KEY))[0]["quantity"] == 2

    store.set_quantity("p1", "42", 0)
    assert json.loads(storage.get_item(CART_KEY))[0]["quantity"] == 1

    store.clear()
    assert json.loads(storage.get_item(CART_KEY)) == []


def test_store_hydrates_previous_session(product):
    storage = MemoryStorage()
    CartStore.open(storage).add(product(), "41")

    restored = CartStore.open(storage)

    assert [(l.id, l.size) for l in restored.lines] == [("p1", "41")]
    assert restored.subtotal() == 20000


def test_store_with_corrupt_storage_starts_empty():
    storage = MemoryStorage({CART_KEY: "{not json"})

    store = CartStore.open(storage)

    assert store.lines == []
    assert store.is_empty()


def test_store_notifies_subscribers_until_unsubscribed(product):
    store = CartStore()
    seen = []
    unsubscribe = store.subscribe(seen.append)

    store.add(product(), "42")
    unsubscribe()
    store.clear()

    assert len(seen) == 1
    assert seen[0] == [CartLine(id="p1", name="Air Runner", price=20000, brand="Nike",
                                image="https://img.shop/air.jpg", size="42", quantity=1)]


def test_store_failed_add_leaves_cart_unchanged(product):
    storage = MemoryStorage()
    store = CartStore.open(storage)
    store.add(product(), "42")
    before = storage.get_item(CART_KEY)

    with pytest.raises(ValidationError):
        store.add(product())

    assert storage.get_item(CART_KEY) == before
    assert len(store.lines) == 1


def test_store_concurrent_adds_are_not_lost(product):
    storage = MemoryStorage()
    store = CartStore.open(storage)
    store.subscribe(lambda lines: time.sleep(0.001))
    item = product()

    def add_many():
        for _ in range(25):
            store.add(item, "42")

    threads = [threading.Thread(target=add_many) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert store.lines[0].quantity == 100
    assert json.loads(storage.get_item(CART_KEY))[0]["quantity"] == 100
