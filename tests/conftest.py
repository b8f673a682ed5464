import mongomock
import pytest
from fastapi.testclient import TestClient

from main import app, get_storefront
from schemas import Product, ProductCreate
from storage import MemoryStorage
from storefront import Storefront


def make_product(**overrides) -> Product:
    data = {
        "id": "p1",
        "name": "Air Runner",
        "brand": "Nike",
        "category": "Running",
        "type": "sneakers",
        "gender": "unisex",
        "price": 20000,
        "stock": 10,
        "status": "InStock",
        "sizes": ["41", "42"],
        "image": "https://img.shop/air.jpg",
        "short_description": "Light runner",
    }
    data.update(overrides)
    return Product(**data)


def make_create(**overrides) -> ProductCreate:
    product = make_product(**overrides)
    return ProductCreate(**product.model_dump(exclude={"id"}))


@pytest.fixture
def product():
    return make_product


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def mongo_db():
    return mongomock.MongoClient()["storefront_test"]


@pytest.fixture
def storefront(storage, mongo_db):
    return Storefront(storage, mongo_db)


@pytest.fixture
def client(storefront):
    app.dependency_overrides[get_storefront] = lambda: storefront
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def product_create():
    return make_create
