"""Tests for form submission."""

from conftest import FakeCollection
from orgregistry.exceptions import GatewayRejectedError
from orgregistry.forms import (
    AddressDraft,
    CoordinatesDraft,
    OrganizationDraft,
    OrganizationFormSubmitter,
    Reference,
    ReferenceFormSubmitter,
)
from orgregistry.guard import DeletionGuard, Navigator
from orgregistry.models import Collection, Coordinates, Organization
from orgregistry.sync import QueryCache


def draft(**overrides):
    data = dict(
        name="Рога",
        employees_count=3,
        type="PUBLIC",
        coordinates=CoordinatesDraft(x=1, y=2),
        postal_address=Reference(id=4),
        reuse_postal_address_as_official=True,
    )
    data.update(overrides)
    return OrganizationDraft(**data)


def observed(cache, collection):
    calls = []
    cache.register(collection, lambda: calls.append(collection))
    return calls


async def test_create_invalidates_touched_collections():
    orgs = FakeCollection(Collection.ORGANIZATIONS)
    cache = QueryCache()
    org_calls = observed(cache, Collection.ORGANIZATIONS)
    coord_calls = observed(cache, Collection.COORDINATES)

    result = await OrganizationFormSubmitter(orgs, cache).submit(draft())

    assert result.ok
    assert orgs.saved[0][0] == "create"
    assert orgs.saved[0][2]["coordinates"] == {"x": 1, "y": 2}
    assert org_calls and coord_calls


async def test_invalid_form_never_reaches_gateway():
    orgs = FakeCollection(Collection.ORGANIZATIONS)
    result = await OrganizationFormSubmitter(orgs, QueryCache()).submit(draft(employees_count=-1))
    assert not result.ok
    assert result.field_path == "employeesCount"
    assert orgs.saved == []


async def test_rejected_save_is_returned():
    orgs = FakeCollection(Collection.ORGANIZATIONS)
    orgs.fail_with = GatewayRejectedError("name already taken", status_code=400)
    result = await OrganizationFormSubmitter(orgs, QueryCache()).submit(draft())
    assert isinstance(result.error, GatewayRejectedError)
    assert result.field_path is None


async def test_edit_of_deleted_organization_redirects():
    orgs = FakeCollection(Collection.ORGANIZATIONS, [Organization(id=42, name="Рога")])
    navigator = Navigator()
    guard = DeletionGuard(lambda: orgs.get(42), navigator=navigator, notice="удалена")
    await guard.load()
    del orgs.rows[42]

    submitter = OrganizationFormSubmitter(orgs, QueryCache(), entity_id=42, guard=guard)
    result = await submitter.submit(draft())

    assert not result.ok
    assert result.redirected
    assert len(navigator.redirects) == 1


async def test_reference_edit_invalidates_dependents():
    coords = FakeCollection(Collection.COORDINATES, [Coordinates(id=7, x=0, y=0)])
    cache = QueryCache()
    org_calls = observed(cache, Collection.ORGANIZATIONS)

    result = await ReferenceFormSubmitter(coords, cache, entity_id=7).submit(
        CoordinatesDraft(x=5, y=5)
    )

    assert result.ok
    assert coords.saved == [("update", 7, {"x": 5, "y": 5})]
    assert org_calls == [Collection.ORGANIZATIONS]


async def test_reference_address_form():
    addresses = FakeCollection(Collection.ADDRESSES)
    result = await ReferenceFormSubmitter(addresses, QueryCache()).submit(
        AddressDraft(zip_code="123", town=Reference(id=1))
    )
    assert result.field_path == "zipCode"
