"""
Tests for WardrobeItemManager against the in-memory record store.
"""
import pytest

from app.core.errors import InputValidationError, ItemNotFoundError, OperationError
from app.models.auth import AuthSession
from app.models.wardrobe import Category, ClothItemFields
from app.services.wardrobe import CLOTHES, WardrobeItemManager


@pytest.fixture
def owner():
    return AuthSession(user_id="user-1", email="jane@example.com", access_token="token-1")


@pytest.fixture
def manager(store, owner):
    return WardrobeItemManager(store=store, session=owner)


def only_item(listing, category):
    items = listing.partition(category)
    assert len(items) == 1
    return items[0]


def test_add_item_appears_in_its_category(manager):
    result = manager.add(Category.FRESH, ClothItemFields(name="Blue Hoodie", color="Blue"))

    assert result.message == "Item added successfully"
    item = only_item(result.wardrobe, Category.FRESH)
    assert item.name == "Blue Hoodie"
    assert item.color == "Blue"
    assert item.user_id == "user-1"
    assert item.type == item.brand == item.size == ""
    assert result.wardrobe.wearing == []
    assert result.wardrobe.dirty == []


def test_add_keeps_every_field_verbatim(manager):
    fields = ClothItemFields(
        name="Rain Jacket",
        color="Olive Green",
        type="Jacket",
        brand="Patagonia",
        size="M",
        notes="Hood zips off; wash cold",
    )

    manager.add(Category.WEARING, fields)

    item = only_item(manager.list_items(), Category.WEARING)
    assert item.model_dump(include=set(fields.model_dump())) == fields.model_dump()
    assert item.category is Category.WEARING


@pytest.mark.parametrize("name", ["", "   "])
def test_add_requires_a_name(manager, store, name):
    with pytest.raises(InputValidationError, match="Name is required"):
        manager.add(Category.FRESH, ClothItemFields(name=name))

    assert store.collections.get(CLOTHES, {}) == {}


def test_add_store_failure(manager, store):
    store.failures.add(("create", CLOTHES))

    with pytest.raises(OperationError, match="Failed to add item"):
        manager.add(Category.FRESH, ClothItemFields(name="Blue Hoodie"))


def test_move_fresh_to_dirty(manager):
    added = manager.add(Category.FRESH, ClothItemFields(name="Blue Hoodie"))
    item = only_item(added.wardrobe, Category.FRESH)

    result = manager.move(item.id, Category.DIRTY)

    assert result.message == "Item moved to dirty"
    assert result.wardrobe.fresh == []
    assert only_item(result.wardrobe, Category.DIRTY).id == item.id


def test_move_to_same_category_is_accepted(manager):
    added = manager.add(Category.WEARING, ClothItemFields(name="Jeans"))
    item = only_item(added.wardrobe, Category.WEARING)

    result = manager.move(item.id, Category.WEARING)

    assert only_item(result.wardrobe, Category.WEARING).id == item.id


def test_move_missing_item(manager):
    with pytest.raises(ItemNotFoundError):
        manager.move("missing", Category.DIRTY)


def test_edit_overwrites_fields_and_keeps_category(manager):
    added = manager.add(Category.WEARING, ClothItemFields(name="Jeans", color="Blue", notes="old"))
    item = only_item(added.wardrobe, Category.WEARING)

    result = manager.edit(item.id, ClothItemFields(name="Black Jeans", color="Black"))

    edited = only_item(result.wardrobe, Category.WEARING)
    assert result.message == "Item updated successfully"
    assert edited.name == "Black Jeans"
    assert edited.color == "Black"
    assert edited.notes == ""


def test_edit_requires_a_name(manager):
    added = manager.add(Category.FRESH, ClothItemFields(name="Scarf"))
    item = only_item(added.wardrobe, Category.FRESH)

    with pytest.raises(InputValidationError):
        manager.edit(item.id, ClothItemFields(name=""))


def test_delete_removes_item(manager):
    added = manager.add(Category.DIRTY, ClothItemFields(name="Socks"))
    item = only_item(added.wardrobe, Category.DIRTY)

    result = manager.delete(item.id)

    assert result.message == "Item deleted successfully"
    assert result.wardrobe.dirty == []


def test_delete_missing_item(manager):
    with pytest.raises(ItemNotFoundError, match="Item not found"):
        manager.delete("missing")


def test_delete_store_failure(manager, store):
    added = manager.add(Category.DIRTY, ClothItemFields(name="Socks"))
    item = only_item(added.wardrobe, Category.DIRTY)
    store.failures.add(("delete", CLOTHES))

    with pytest.raises(OperationError, match="Failed to delete item"):
        manager.delete(item.id)


def test_listing_is_newest_first_and_only_own_items(manager, store):
    manager.add(Category.FRESH, ClothItemFields(name="First"))
    manager.add(Category.FRESH, ClothItemFields(name="Second"))
    store.create(CLOTHES, {"user_id": "someone-else", "name": "Not mine", "category": "fresh"})

    listing = manager.list_items()

    assert [item.name for item in listing.fresh] == ["Second", "First"]


def test_each_item_is_listed_exactly_once(manager):
    manager.add(Category.FRESH, ClothItemFields(name="Shirt"))
    manager.add(Category.WEARING, ClothItemFields(name="Jeans"))
    manager.add(Category.DIRTY, ClothItemFields(name="Socks"))

    listing = manager.list_items()

    names = [item.name for category in Category for item in listing.partition(category)]
    assert sorted(names) == ["Jeans", "Shirt", "Socks"]


def test_listing_failure(manager, store):
    store.failures.add(("read", CLOTHES))

    with pytest.raises(OperationError, match="Failed to load items"):
        manager.list_items()
