from storage import FileStorage, MemoryStorage


def test_file_storage_round_trip(tmp_path):
    storage = FileStorage(str(tmp_path / "device"))

    assert storage.get_item("cart") is None
    storage.set_item("cart", "[]")
    storage.set_item("cart", '[{"id": "1", "price": 5}]')

    assert storage.get_item("cart") == '[{"id": "1", "price": 5}]'
    assert sorted(p.name for p in (tmp_path / "device").iterdir()) == ["cart.json"]


def test_file_storage_remove_is_idempotent(tmp_path):
    storage = FileStorage(str(tmp_path))
    storage.set_item("recentlyViewed", "[]")

    storage.remove_item("recentlyViewed")
    storage.remove_item("recentlyViewed")

    assert storage.get_item("recentlyViewed") is None


def test_file_storage_keys_are_independent(tmp_path):
    storage = FileStorage(str(tmp_path))
    storage.set_item("cart", "a")
    storage.set_item("recentlyViewed", "b")

    storage.remove_item("cart")

    assert storage.get_item("recentlyViewed") == "b"


def test_memory_storage():
    storage = MemoryStorage({"cart": "[]"})

    assert storage.get_item("cart") == "[]"
    storage.remove_item("cart")
    storage.remove_item("cart")
    assert storage.get_item("cart") is None
