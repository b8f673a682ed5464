"""
Catalog filter engine and pagination.

Everything here is pure except CatalogView, which holds the products page
state (applied filters and current page) in memory.
"""
import math
from typing import List, Optional, Sequence, TypeVar, Union

from schemas import FilterCriteria, Product

T = TypeVar("T")
PageToken = Union[int, str]

ELLIPSIS = "…"
PAGE_SIZE = 6
# page counts up to this are shown in full
MAX_VISIBLE_PAGES = 5


def matches(product: Product, criteria: FilterCriteria) -> bool:
    type_ok = criteria.type == "all" or product.type == criteria.type
    gender_ok = criteria.gender == "any" or product.gender == criteria.gender
    brand_ok = criteria.brand == "all" or product.brand == criteria.brand
    price_ok = criteria.price_range.min <= product.price <= criteria.price_range.max
    return type_ok and gender_ok and brand_ok and price_ok


def apply_filters(products: Sequence[Product], criteria: FilterCriteria) -> List[Product]:
    return [p for p in products if matches(p, criteria)]


def page_count(items: Sequence, page_size: int) -> int:
    if page_size < 1:
        raise ValueError("page_size must be positive")
    return math.ceil(len(items) / page_size)


def paginate(items: Sequence[T], page_size: int, page_number: int) -> List[T]:
    if page_size < 1:
        raise ValueError("page_size must be positive")
    if page_number < 1:
        raise ValueError("page_number starts at 1")
    start = (page_number - 1) * page_size
    return list(items[start:start + page_size])


def page_window(current_page: int, total_pages: int) -> List[PageToken]:
    """Page numbers to render, with ellipsis tokens for long ranges.

    >>> page_window(5, 10)
    [1, '…', 4, 5, 6, '…', 10]
    """
    if total_pages < 1:
        return []
    if total_pages <= MAX_VISIBLE_PAGES:
        return list(range(1, total_pages + 1))
    if current_page <= 3:
        return [1, 2, 3, 4, ELLIPSIS, total_pages]
    if current_page >= total_pages - 2:
        return [1, ELLIPSIS, total_pages - 3, total_pages - 2, total_pages - 1, total_pages]
    return [1, ELLIPSIS, current_page - 1, current_page, current_page + 1, ELLIPSIS, total_pages]


def brand_options(products: Sequence[Product]) -> List[str]:
    brands = dict.fromkeys(p.brand for p in products if p.brand)
    return ["all", *brands]


class CatalogView:
    """Products page: fetched products, applied filters and the current page.

    ``criteria`` of None means no filter has been applied and every product
    is listed.
    """

    def __init__(self, products: Sequence[Product], page_size: int = PAGE_SIZE):
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.products: List[Product] = list(products)
        self.page_size = page_size
        self.criteria: Optional[FilterCriteria] = None
        self.page = 1

    @property
    def results(self) -> List[Product]:
        if self.criteria is None:
            return list(self.products)
        return apply_filters(self.products, self.criteria)

    def apply(self, criteria: FilterCriteria) -> List[Product]:
        self.criteria = criteria
        self.page = 1
        return self.visible()

    def clear(self) -> List[Product]:
        self.criteria = None
        self.page = 1
        return self.visible()

    def page_count(self) -> int:
        return page_count(self.results, self.page_size)

    def go_to(self, page: int) -> int:
        if 1 <= page <= self.page_count():
            self.page = page
        return self.page

    def visible(self) -> List[Product]:
        return paginate(self.results, self.page_size, self.page)

    def window(self) -> List[PageToken]:
        return page_window(self.page, self.page_count())

    def brands(self) -> List[str]:
        return brand_options(self.products)

    def summary(self) -> dict:
        total = len(self.results)
        start = (self.page - 1) * self.page_size
        return {
            "first": start + 1 if total else 0,
            "last": min(start + self.page_size, total),
            "total": total,
        }
