"""
Wiring for one device: local stores bound to the hosted collaborators.

Every consumer receives this object (or one of its parts) explicitly.
"""
from checkout import Checkout
from cart import CartStore
from favourites import Favourites
from identity import IdentityProvider
from recently_viewed import RecentlyViewed
from stores import CatalogStore, OrderStore


class Storefront:
    def __init__(self, storage, database):
        self.storage = storage
        self.catalog = CatalogStore(database)
        self.orders = OrderStore(database)
        self.identity = IdentityProvider(database)
        self.cart = CartStore.open(storage)
        self.recently_viewed = RecentlyViewed(storage)
        self.favourites = Favourites()
        self.checkout = Checkout(self.cart, self.orders)
