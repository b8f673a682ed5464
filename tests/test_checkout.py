import threading
import time

import pytest

from cart import CartStore
from checkout import Checkout, build_order, compute_totals, validate
from errors import CollaboratorError, ValidationError
from schemas import CartLine, CheckoutForm
from storage import CART_KEY, MemoryStorage
from stores import OrderStore

VALID_FORM = {
    "full_name": "Ada Obi",
    "phone": "+2348012345678",
    "email": "ada@mail.com",
    "address1": "12 Allen Avenue",
    "city": "Ikeja",
    "state": "Lagos",
    "lga": "Ikeja",
    "payment_method": "pay_on_delivery",
}


class SlowOrderStore:
    def __init__(self):
        self.inserted = []

    def insert(self, order):
        time.sleep(0.2)
        self.inserted.append(order)
        return f"order-{len(self.inserted)}"


class FailingOrderStore:
    def __init__(self):
        self.attempts = 0

    def insert(self, order):
        self.attempts += 1
        raise CollaboratorError("insert order failed, please try again")


@pytest.fixture
def cart_store(product):
    store = CartStore.open(MemoryStorage())
    store.add(product(), "42")
    return store


def test_compute_totals_end_to_end():
    lines = [
        CartLine(id=1, price=20000, quantity=2),
        CartLine(id=2, price=5000, quantity=1),
    ]

    totals = compute_totals(lines)

    assert (totals.subtotal, totals.item_count, totals.total) == (45000, 3, 45000)
    assert totals.delivery_fee == 0


def test_compute_totals_empty_cart():
    totals = compute_totals([])

    assert (totals.subtotal, totals.item_count, totals.total) == (0, 0, 0)


def test_valid_form_has_no_errors():
    assert validate(CheckoutForm(**VALID_FORM)) == {}


@pytest.mark.parametrize("phone", ["abc", "", "+23", "080-abc-1234", "+2348012345678901234"])
def test_phone_rejected(phone):
    errors = validate(CheckoutForm(**{**VALID_FORM, "phone": phone}))

    assert "phone" in errors


@pytest.mark.parametrize("phone", ["+2348012345678", "08012345678", "0801 234 5678", "0801-234-5678"])
def test_phone_accepted(phone):
    assert "phone" not in validate(CheckoutForm(**{**VALID_FORM, "phone": phone}))


@pytest.mark.parametrize("email", ["ada", "ada@mail", "ada @mail.com", "@mail.com"])
def test_email_rejected(email):
    assert "email" in validate(CheckoutForm(**{**VALID_FORM, "email": email}))


@pytest.mark.parametrize("field", ["full_name", "address1", "city", "state", "lga"])
def test_required_fields(field):
    errors = validate(CheckoutForm(**{**VALID_FORM, field: "   "}))

    assert list(errors) == [field]


def test_payment_method_must_be_known():
    assert "payment_method" in validate(CheckoutForm(**{**VALID_FORM, "payment_method": ""}))
    assert "payment_method" in validate(CheckoutForm(**{**VALID_FORM, "payment_method": "card"}))


def test_blank_form_reports_every_required_field():
    errors = validate(CheckoutForm())

    assert set(errors) == {"full_name", "phone", "email", "address1", "city", "state", "lga"}


def test_build_order_snapshots_lines_and_trims_fields(cart_store):
    form = CheckoutForm(**{**VALID_FORM, "full_name": "  Ada Obi ", "landmark": " Opposite the bank "})

    order = build_order(form, cart_store.lines)

    assert order.customer_name == "Ada Obi"
    assert order.delivery_address.landmark == "Opposite the bank"
    assert order.amount == 20000
    assert order.status == "Processing"
    assert [(i.product_id, i.size, i.quantity) for i in order.items] == [("p1", "42", 1)]


def test_errors_are_recomputed_on_every_change(cart_store, mongo_db):
    checkout = Checkout(cart_store, OrderStore(mongo_db))
    assert "full_name" in checkout.errors
    assert not checkout.can_submit()

    checkout.update(full_name="Ada Obi")
    assert "full_name" not in checkout.errors

    checkout.update(**VALID_FORM)
    assert checkout.errors == {}
    assert checkout.can_submit()

    checkout.update(phone="abc")
    assert list(checkout.errors) == ["phone"]
    assert not checkout.can_submit()


def test_update_rejects_unknown_fields(cart_store, mongo_db):
    checkout = Checkout(cart_store, OrderStore(mongo_db))

    with pytest.raises(ValidationError):
        checkout.update(coupon="FREE")


def test_submit_places_order_then_clears_cart_and_form(cart_store, mongo_db):
    checkout = Checkout(cart_store, OrderStore(mongo_db))
    checkout.update(**VALID_FORM)

    order = checkout.submit()

    assert order.id is not None
    assert order.amount == 20000
    assert mongo_db["order"].count_documents({}) == 1
    assert cart_store.is_empty()
    assert checkout.form == CheckoutForm()
    assert not checkout.can_submit()


def test_submit_blocked_by_form_errors(cart_store, mongo_db):
    checkout = Checkout(cart_store, OrderStore(mongo_db))
    checkout.update(**{**VALID_FORM, "phone": "abc"})

    with pytest.raises(ValidationError) as exc:
        checkout.submit()

    assert exc.value.errors == {"phone": "Enter a valid phone number."}
    assert mongo_db["order"].count_documents({}) == 0
    assert len(cart_store.lines) == 1


def test_submit_blocked_by_empty_cart(mongo_db):
    checkout = Checkout(CartStore(), OrderStore(mongo_db))
    checkout.update(**VALID_FORM)

    with pytest.raises(ValidationError) as exc:
        checkout.submit()

    assert "cart" in exc.value.errors
    assert mongo_db["order"].count_documents({}) == 0


def test_failed_submission_keeps_cart_and_form(product):
    storage = MemoryStorage()
    cart_store = CartStore.open(storage)
    cart_store.add(product(), "42")
    orders = FailingOrderStore()
    checkout = Checkout(cart_store, orders)
    checkout.update(**VALID_FORM)
    stored_cart = storage.get_item(CART_KEY)

    with pytest.raises(CollaboratorError):
        checkout.submit()

    assert orders.attempts == 1
    assert storage.get_item(CART_KEY) == stored_cart
    assert len(cart_store.lines) == 1
    assert checkout.form.full_name == "Ada Obi"
    assert checkout.can_submit()


def test_build_order_trims_state(cart_store):
    order = build_order(CheckoutForm(**{**VALID_FORM, "state": " Lagos "}), cart_store.lines)

    assert order.delivery_address.state == "Lagos"


def test_update_rejects_wrongly_typed_fields(cart_store, mongo_db):
    checkout = Checkout(cart_store, OrderStore(mongo_db))
    checkout.update(**VALID_FORM)

    with pytest.raises(ValidationError) as exc:
        checkout.update(full_name=None)

    assert list(exc.value.errors) == ["full_name"]
    assert checkout.form.full_name == "Ada Obi"
    assert checkout.errors == {}


def test_overlapping_submissions_place_one_order(cart_store):
    orders = SlowOrderStore()
    checkout = Checkout(cart_store, orders)
    checkout.update(**VALID_FORM)
    outcomes = []

    def submit():
        try:
            outcomes.append(checkout.submit().id)
        except ValidationError as exc:
            outcomes.append(exc.errors)

    threads = [threading.Thread(target=submit) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(orders.inserted) == 1
    assert "order-1" in outcomes
    assert len(outcomes) == 2
    assert cart_store.is_empty()
