"""Tests for the list query state store."""

import pytest

from orgregistry.config import RegistrySettings
from orgregistry.models import Collection, SortDirection
from orgregistry.state import QueryStateStore


@pytest.fixture
def store():
    return QueryStateStore(Collection.ORGANIZATIONS)


def test_defaults(store):
    state = store.state
    assert state.search == ""
    assert state.search_field == "name"
    assert state.sort == "id"
    assert state.direction is SortDirection.ASC
    assert state.page == 0


def test_search_resets_page(store):
    store.set_page(3)
    store.set_search("Рога")
    assert store.state.page == 0
    assert store.state.search == "Рога"


def test_search_field_must_be_allowed(store):
    store.set_search("620000", "postalAddress.zipCode")
    assert store.state.search_field == "postalAddress.zipCode"
    with pytest.raises(ValueError):
        store.set_search("x", "employeesCount")


def test_reference_lists_have_no_search():
    store = QueryStateStore(Collection.COORDINATES)
    with pytest.raises(ValueError):
        store.set_search("1")


def test_sort_toggles_direction_on_same_field(store):
    store.set_sort("id")
    assert store.state.direction is SortDirection.DESC
    store.set_sort("id")
    assert store.state.direction is SortDirection.ASC


def test_new_sort_field_starts_ascending_and_resets_page(store):
    store.set_sort("name")
    store.set_sort("name")
    store.set_page(2)
    store.set_sort("rating")
    assert store.state.sort == "rating"
    assert store.state.direction is SortDirection.ASC
    assert store.state.page == 0


def test_negative_page_rejected(store):
    with pytest.raises(ValueError):
        store.set_page(-1)


def test_listeners_fire_only_on_key_change(store):
    keys = []
    unsubscribe = store.subscribe(keys.append)

    store.set_page(0)
    assert keys == []

    store.set_page(1)
    assert keys == [store.cache_key]

    unsubscribe()
    store.set_page(2)
    assert len(keys) == 1


def test_cache_key_distinguishes_every_component(store):
    seen = {store.cache_key}
    store.set_search("a")
    seen.add(store.cache_key)
    store.set_search("a", "fullName")
    seen.add(store.cache_key)
    store.set_sort("name")
    seen.add(store.cache_key)
    store.set_sort("name")
    seen.add(store.cache_key)
    store.set_page(1)
    seen.add(store.cache_key)
    assert len(seen) == 6


def test_to_query_trims_search(store):
    store.set_search("  Рога  ", "fullName")
    params = store.state.to_query().to_params()
    assert params["search"] == "Рога"
    assert params["searchField"] == "fullName"


def test_blank_search_is_not_sent(store):
    store.set_search("   ")
    params = store.state.to_query().to_params()
    assert "search" not in params
    assert params == {"page": 0, "size": 10, "sort": "id", "dir": "asc"}


def test_page_size_comes_from_settings(monkeypatch):
    monkeypatch.setattr(
        "orgregistry.state.query.get_settings",
        lambda: RegistrySettings(_env_file=None, page_size=25),
    )
    assert QueryStateStore(Collection.ORGANIZATIONS).state.to_query().size == 25
    assert QueryStateStore(Collection.ORGANIZATIONS, page_size=5).state.page_size == 5
