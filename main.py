import logging
import os
from functools import lru_cache
from typing import List, Optional, Union

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, EmailStr
from pydantic import ValidationError as PydanticValidationError

import database
from catalog import PAGE_SIZE, CatalogView
from checkout import NIGERIA_STATES, compute_totals
from errors import AuthError, CollaboratorError, ValidationError
from schemas import (
    PRICE_SLIDER_MAX,
    PRICE_SLIDER_MIN,
    FilterCriteria,
    OrderStatus,
    PriceRange,
    ProductCreate,
    ProductUpdate,
    UserProfile,
)
from search import MIN_QUERY_LENGTH
from storage import FileStorage
from storefront import Storefront

logger = logging.getLogger(__name__)

DATA_DIR = os.getenv("STOREFRONT_DATA_DIR", ".storefront")

app = FastAPI(title="Storefront API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=1)
def get_storefront() -> Storefront:
    return Storefront(FileStorage(DATA_DIR), database.db)


# ----------------------- Errors -----------------------
@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"detail": exc.message, "errors": exc.errors})


@app.exception_handler(CollaboratorError)
async def collaborator_error_handler(request: Request, exc: CollaboratorError):
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    return JSONResponse(status_code=401, content={"detail": str(exc)})


# ----------------------- Auth helpers -----------------------
security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    sf: Storefront = Depends(get_storefront),
) -> UserProfile:
    # HTTP callers authenticate per request; the device session is never consulted here
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return sf.identity.get_current_user(credentials.credentials)


def get_admin_user(user: UserProfile = Depends(get_current_user)) -> UserProfile:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin only")
    return user


# ----------------------- Request bodies -----------------------
class SignupBody(BaseModel):
    name: str
    email: EmailStr
    password: str


class LoginBody(BaseModel):
    email: EmailStr
    password: str


class CartAddBody(BaseModel):
    product_id: str
    size: Optional[Union[str, int]] = None


class QuantityBody(BaseModel):
    quantity: int
    size: Optional[Union[str, int]] = None


class CheckoutFormBody(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address1: Optional[str] = None
    address2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    lga: Optional[str] = None
    landmark: Optional[str] = None
    notes: Optional[str] = None
    payment_method: Optional[str] = None


class OrderStatusBody(BaseModel):
    status: OrderStatus


# ----------------------- Health -----------------------
@app.get("/")
def root():
    return {"message": "Storefront API running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
        "device_storage": DATA_DIR,
        "collections": [],
    }
    try:
        if database.db is not None:
            response["database"] = "✅ Connected & Working"
            response["collections"] = database.db.list_collection_names()[:10]
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response


# ----------------------- Auth -----------------------
@app.post("/auth/signup")
def signup(body: SignupBody, sf: Storefront = Depends(get_storefront)):
    return sf.identity.sign_up(body.email, body.password, body.name)


@app.post("/auth/login")
def login(body: LoginBody, sf: Storefront = Depends(get_storefront)):
    return sf.identity.sign_in(body.email, body.password)


@app.get("/auth/me")
def me(user: UserProfile = Depends(get_current_user)):
    return user


@app.post("/auth/logout")
def logout():
    # tokens are stateless; the client discards its own
    return {"ok": True}


# ----------------------- Products -----------------------
@app.get("/products")
def list_products(
    type: Optional[str] = None,
    gender: Optional[str] = None,
    brand: Optional[str] = None,
    min_price: Optional[int] = None,
    max_price: Optional[int] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(PAGE_SIZE, ge=1, le=100),
    sf: Storefront = Depends(get_storefront),
):
    view = CatalogView(sf.catalog.fetch_all(), page_size=page_size)
    if any(v is not None for v in (type, gender, brand, min_price, max_price)):
        try:
            criteria = FilterCriteria(
                type=type or "all",
                gender=gender or "any",
                brand=brand or "all",
                price_range=PriceRange(
                    min=PRICE_SLIDER_MIN if min_price is None else min_price,
                    max=PRICE_SLIDER_MAX if max_price is None else max_price,
                ),
            )
        except PydanticValidationError as exc:
            raise HTTPException(status_code=422, detail=f"Invalid filters: {exc.error_count()} error(s)")
        view.apply(criteria)
    view.go_to(page)
    return {
        "items": view.visible(),
        "page": view.page,
        "page_count": view.page_count(),
        "pages": view.window(),
        "showing": view.summary(),
        "brands": view.brands(),
        "filters": view.criteria,
    }


@app.get("/products/new-arrivals")
def new_arrivals(sf: Storefront = Depends(get_storefront)):
    return sf.catalog.fetch_all(limit=4)


@app.get("/products/{product_id}")
def get_product(product_id: str, sf: Storefront = Depends(get_storefront)):
    product = sf.catalog.fetch_by_id(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    sf.recently_viewed.record(product)
    return {**product.model_dump(), "is_favourite": sf.favourites.contains(product.id)}


@app.get("/search")
def search(q: str = "", sf: Storefront = Depends(get_storefront)):
    if len(q.strip()) < MIN_QUERY_LENGTH:
        return []
    return sf.catalog.search(q)


@app.post("/products")
def create_product(body: ProductCreate, user=Depends(get_admin_user), sf: Storefront = Depends(get_storefront)):
    product = sf.catalog.insert(body)
    logger.info("Product created", extra={"product_id": product.id, "admin": user.id})
    return product


@app.put("/products/{product_id}")
def update_product(
    product_id: str,
    body: ProductUpdate,
    user=Depends(get_admin_user),
    sf: Storefront = Depends(get_storefront),
):
    product = sf.catalog.update(product_id, body)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@app.delete("/products/{product_id}")
def delete_product(product_id: str, user=Depends(get_admin_user), sf: Storefront = Depends(get_storefront)):
    if not sf.catalog.delete(product_id):
        raise HTTPException(status_code=404, detail="Product not found")
    return {"ok": True}


# ----------------------- Cart -----------------------
def cart_view(sf: Storefront) -> dict:
    lines = sf.cart.lines
    return {"items": lines, "totals": compute_totals(lines)}


@app.get("/cart")
def get_cart(sf: Storefront = Depends(get_storefront)):
    return cart_view(sf)


@app.post("/cart/items")
def add_to_cart(body: CartAddBody, sf: Storefront = Depends(get_storefront)):
    product = sf.catalog.fetch_by_id(body.product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    size = None if body.size is None else str(body.size)
    existed = sf.cart.find(product.id, size if product.sizes else None) is not None
    sf.cart.add(product, size)
    return {**cart_view(sf), "message": "Quantity updated" if existed else "Added to cart"}


@app.patch("/cart/items/{product_id}")
def set_cart_quantity(product_id: str, body: QuantityBody, sf: Storefront = Depends(get_storefront)):
    size = None if body.size is None else str(body.size)
    sf.cart.set_quantity(product_id, size, body.quantity)
    return cart_view(sf)


@app.post("/cart/items/{product_id}/increment")
def increment_cart_item(product_id: str, size: Optional[str] = None, sf: Storefront = Depends(get_storefront)):
    sf.cart.increment(product_id, size)
    return cart_view(sf)


@app.post("/cart/items/{product_id}/decrement")
def decrement_cart_item(product_id: str, size: Optional[str] = None, sf: Storefront = Depends(get_storefront)):
    sf.cart.decrement(product_id, size)
    return cart_view(sf)


@app.delete("/cart/items/{product_id}")
def remove_cart_item(product_id: str, size: Optional[str] = None, sf: Storefront = Depends(get_storefront)):
    sf.cart.remove(product_id, size)
    return cart_view(sf)


@app.delete("/cart")
def clear_cart(sf: Storefront = Depends(get_storefront)):
    sf.cart.clear()
    return cart_view(sf)


# ----------------------- Recently viewed & favourites -----------------------
@app.get("/recently-viewed")
def recently_viewed(sf: Storefront = Depends(get_storefront)):
    return sf.recently_viewed.list()


@app.delete("/recently-viewed/{product_id}")
def remove_recently_viewed(product_id: str, sf: Storefront = Depends(get_storefront)):
    return sf.recently_viewed.remove(product_id)


@app.delete("/recently-viewed")
def clear_recently_viewed(sf: Storefront = Depends(get_storefront)):
    return sf.recently_viewed.clear()


@app.get("/favourites")
def favourites(sf: Storefront = Depends(get_storefront)):
    return sf.favourites.list()


@app.post("/favourites/{product_id}")
def toggle_favourite(product_id: str, sf: Storefront = Depends(get_storefront)):
    product = sf.catalog.fetch_by_id(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return {"id": product.id, "favourite": sf.favourites.toggle(product)}


# ----------------------- Checkout -----------------------
def checkout_view(sf: Storefront) -> dict:
    return {
        "form": sf.checkout.form,
        "errors": sf.checkout.errors,
        "totals": sf.checkout.totals(),
        "can_submit": sf.checkout.can_submit(),
        "states": NIGERIA_STATES,
    }


@app.get("/checkout")
def get_checkout(sf: Storefront = Depends(get_storefront)):
    return checkout_view(sf)


@app.patch("/checkout/form")
def update_checkout_form(body: CheckoutFormBody, sf: Storefront = Depends(get_storefront)):
    sf.checkout.update(**body.model_dump(exclude_none=True))
    return checkout_view(sf)


@app.post("/checkout", status_code=201)
def place_order(body: Optional[CheckoutFormBody] = None, sf: Storefront = Depends(get_storefront)):
    if body is not None:
        sf.checkout.update(**body.model_dump(exclude_none=True))
    order = sf.checkout.submit()
    return {"order": order, "message": "Order placed successfully!"}


# ----------------------- Profile -----------------------
@app.get("/profile/orders")
def my_orders(user: UserProfile = Depends(get_current_user), sf: Storefront = Depends(get_storefront)):
    return sf.orders.fetch_by_email(user.email)


# ----------------------- Admin -----------------------
@app.get("/admin/orders")
def admin_orders(user=Depends(get_admin_user), sf: Storefront = Depends(get_storefront)):
    return sf.orders.fetch_all()


@app.patch("/admin/orders/{order_id}")
def admin_update_order(
    order_id: str,
    body: OrderStatusBody,
    user=Depends(get_admin_user),
    sf: Storefront = Depends(get_storefront),
):
    if not sf.orders.update_status(order_id, body.status):
        raise HTTPException(status_code=404, detail="Order not found")
    return {"ok": True}


@app.get("/admin/stats")
def admin_stats(user=Depends(get_admin_user), sf: Storefront = Depends(get_storefront)):
    orders = sf.orders.fetch_all()
    return {
        "products": sf.catalog.count(),
        "orders": len(orders),
        "customers": len({o.customer_email or o.customer_name for o in orders}),
        "revenue": sum(o.amount for o in orders),
    }


# ----------------------- Seed Demo Data -----------------------
DEMO_PRODUCTS: List[dict] = [
    {
        "name": "Air Runner Classic",
        "brand": "Nike",
        "category": "Running",
        "type": "sneakers",
        "gender": "unisex",
        "price": 85000,
        "stock": 24,
        "status": "InStock",
        "sizes": ["40", "41", "42", "43", "44"],
        "image": "https://images.unsplash.com/photo-1542291026-7eec264c27ff",
        "short_description": "Lightweight runner with a cushioned sole.",
    },
    {
        "name": "Court Vision Low",
        "brand": "Nike",
        "category": "Lifestyle",
        "type": "sneakers",
        "gender": "male",
        "price": 62000,
        "stock": 6,
        "status": "LowStock",
        "sizes": ["41", "42", "43"],
        "image": "https://images.unsplash.com/photo-1543508282-6319a3e2621f",
        "short_description": "Clean white leather for everyday wear.",
    },
    {
        "name": "Penny Loafer",
        "brand": "Clarks",
        "category": "Formal",
        "type": "loafers",
        "gender": "male",
        "price": 120000,
        "stock": 12,
        "status": "InStock",
        "sizes": ["42", "43", "44", "45"],
        "image": "https://images.unsplash.com/photo-1614252235316-8c857d38b5f4",
        "short_description": "Hand-stitched leather loafer.",
    },
    {
        "name": "Stiletto Pump",
        "brand": "Aldo",
        "category": "Evening",
        "type": "heels",
        "gender": "female",
        "price": 95000,
        "stock": 9,
        "status": "InStock",
        "sizes": ["37", "38", "39", "40"],
        "image": "https://images.unsplash.com/photo-1543163521-1bf539c55dd2",
        "short_description": "Pointed toe pump with a 10cm heel.",
    },
    {
        "name": "Block Heel Sandal",
        "brand": "Aldo",
        "category": "Casual",
        "type": "sandals",
        "gender": "female",
        "price": 48000,
        "stock": 0,
        "status": "OutOfStock",
        "sizes": ["37", "38", "39"],
        "image": "https://images.unsplash.com/photo-1603487742131-4160ec999306",
        "short_description": "Ankle strap sandal on a stable block heel.",
    },
    {
        "name": "Slide Sandal",
        "brand": "Adidas",
        "category": "Casual",
        "type": "sandals",
        "gender": "unisex",
        "price": 18000,
        "stock": 40,
        "status": "InStock",
        "sizes": [],
        "image": "https://images.unsplash.com/photo-1603808033192-082d6919d3e1",
        "short_description": "One-size slide for the pool and the street.",
    },
]


@app.post("/seed")
def seed(sf: Storefront = Depends(get_storefront)):
    if sf.catalog.count() > 0:
        return {"seeded": False, "message": "Products already exist"}
    for p in DEMO_PRODUCTS:
        sf.catalog.insert(ProductCreate(**p))
    sf.identity.ensure_admin("admin@shop.com", "admin123")
    return {"seeded": True, "products": sf.catalog.count()}


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
