"""
Checkout aggregator: totals, contact/address validation and order submission.
"""
import logging
import re
import threading
from typing import Dict, List

from cart import CartStore, item_count, subtotal
from pydantic import ValidationError as PydanticValidationError

from errors import CollaboratorError, ValidationError
from schemas import CartLine, CartTotals, CheckoutForm, DeliveryAddress, Order, OrderItem

logger = logging.getLogger(__name__)

DELIVERY_FEE = 0
PAYMENT_METHODS = ("pay_on_delivery", "pay_now")

# optional +, a digit, then 9-14 digits, spaces or hyphens
PHONE_RE = re.compile(r"^\+?\d[\d\s-]{9,14}$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

NIGERIA_STATES = [
    "Abia", "Adamawa", "Akwa Ibom", "Anambra", "Bauchi", "Bayelsa", "Benue",
    "Borno", "Cross River", "Delta", "Ebonyi", "Edo", "Ekiti", "Enugu", "FCT",
    "Gombe", "Imo", "Jigawa", "Kaduna", "Kano", "Katsina", "Kebbi", "Kogi",
    "Kwara", "Lagos", "Nasarawa", "Niger", "Ogun", "Ondo", "Osun", "Oyo",
    "Plateau", "Rivers", "Sokoto", "Taraba", "Yobe", "Zamfara",
]


def compute_totals(lines: List[CartLine]) -> CartTotals:
    amount = subtotal(lines)
    return CartTotals(
        subtotal=amount,
        item_count=item_count(lines),
        delivery_fee=DELIVERY_FEE,
        total=amount + DELIVERY_FEE,
    )


def validate(form: CheckoutForm) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if not form.full_name.strip():
        errors["full_name"] = "Full name is required."
    if not PHONE_RE.match(form.phone.strip()):
        errors["phone"] = "Enter a valid phone number."
    if not EMAIL_RE.match(form.email.strip()):
        errors["email"] = "Enter a valid email."
    if not form.address1.strip():
        errors["address1"] = "Address line is required."
    if not form.city.strip():
        errors["city"] = "City is required."
    if not form.state.strip():
        errors["state"] = "State is required."
    if not form.lga.strip():
        errors["lga"] = "LGA is required."
    if form.payment_method not in PAYMENT_METHODS:
        errors["payment_method"] = "Select a payment method."
    return errors


def build_order(form: CheckoutForm, lines: List[CartLine]) -> Order:
    totals = compute_totals(lines)
    return Order(
        customer_name=form.full_name.strip(),
        customer_email=form.email.strip(),
        customer_phone=form.phone.strip(),
        delivery_address=DeliveryAddress(
            address1=form.address1.strip(),
            address2=form.address2.strip(),
            city=form.city.strip(),
            state=form.state.strip(),
            lga=form.lga.strip(),
            landmark=form.landmark.strip(),
            notes=form.notes.strip(),
        ),
        payment_method=form.payment_method,
        items=[
            OrderItem(
                product_id=line.id,
                name=line.name,
                price=line.price,
                quantity=line.quantity,
                size=line.size,
                image=line.image,
            )
            for line in lines
        ],
        amount=totals.total,
        status="Processing",
    )


class Checkout:
    """Checkout form state bound to the cart and the order store.

    The error map is recomputed on every form change, not only on submit.
    Submissions are serialised: a second submit waits for the first and is
    then blocked by the reset form and the emptied cart.
    """

    def __init__(self, cart: CartStore, orders):
        self.cart = cart
        self.orders = orders
        self._lock = threading.RLock()
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self.form = CheckoutForm()
            self.errors = validate(self.form)

    def update(self, **fields) -> Dict[str, str]:
        unknown = set(fields) - set(CheckoutForm.model_fields)
        if unknown:
            raise ValidationError(f"unknown checkout field(s): {', '.join(sorted(unknown))}")
        with self._lock:
            try:
                form = CheckoutForm.model_validate({**self.form.model_dump(), **fields})
            except PydanticValidationError as exc:
                raise ValidationError(
                    "invalid checkout field(s)",
                    {str(err["loc"][0]): err["msg"] for err in exc.errors()},
                ) from exc
            self.form = form
            self.errors = validate(self.form)
            return self.errors

    def totals(self) -> CartTotals:
        return compute_totals(self.cart.lines)

    def can_submit(self) -> bool:
        return not self.errors and not self.cart.is_empty()

    def submit(self) -> Order:
        with self._lock, self.cart.lock:
            if self.errors:
                raise ValidationError("Please complete the required fields.", dict(self.errors))
            if self.cart.is_empty():
                raise ValidationError("Your cart is empty.", {"cart": "Your cart is empty."})

            order = build_order(self.form, self.cart.lines)
            try:
                order_id = self.orders.insert(order)
            except CollaboratorError:
                logger.warning("Order submission failed, cart kept for retry", extra={"amount": order.amount})
                raise
            logger.info("Order placed", extra={"order_id": order_id, "amount": order.amount})
            self.cart.clear()
            self.reset()
            return order.model_copy(update={"id": order_id})
