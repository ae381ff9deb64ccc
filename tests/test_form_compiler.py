"""Tests for the nested-entity form compiler."""

import pytest

from conftest import FakeGateway
from orgregistry.exceptions import FormValidationError
from orgregistry.forms import (
    AddressDraft,
    CoordinatesDraft,
    CoordinatesPolicy,
    FormCompiler,
    LocationDraft,
    OrganizationDraft,
    Reference,
    draft_from_organization,
)
from orgregistry.forms.compiler import (
    MSG_INTEGER,
    MSG_NEGATIVE,
    MSG_POSITIVE,
    MSG_REQUIRED,
    MSG_UNKNOWN_REFERENCE,
    MSG_ZIP_CODE,
)
from orgregistry.models import (
    Address,
    Collection,
    Coordinates,
    Location,
    Organization,
    OrganizationType,
)
from orgregistry.references import ReferenceTable


def valid_draft(**overrides):
    data = dict(
        name="Рога и копыта",
        employees_count="12",
        type="COMMERCIAL",
        rating="4.5",
        coordinates=CoordinatesDraft(x="10", y=-3),
        postal_address=AddressDraft(
            zip_code="6200000",
            town=LocationDraft(name="Екатеринбург", x=1, y=2, z="3.5"),
        ),
        official_address=Reference(id=5),
    )
    data.update(overrides)
    return OrganizationDraft(**data)


@pytest.fixture
def compiler():
    return FormCompiler()


def test_valid_draft_compiles_to_minimal_payload(compiler):
    body = compiler.compile(valid_draft()).to_json()
    assert body == {
        "name": "Рога и копыта",
        "employeesCount": 12,
        "type": "COMMERCIAL",
        "rating": 4.5,
        "coordinates": {"x": 10, "y": -3},
        "postalAddress": {
            "zipCode": "6200000",
            "town": {"name": "Екатеринбург", "x": 1, "y": 2, "z": 3.5},
        },
        "officialAddressId": 5,
    }


def test_each_slot_has_exactly_one_representation(compiler):
    body = compiler.compile(
        valid_draft(coordinates=Reference(id=3), postal_address=Reference(id=4))
    ).to_json()
    assert body["coordinatesId"] == 3
    assert "coordinates" not in body
    assert body["postalAddressId"] == 4
    assert "postalAddress" not in body


def test_negative_employees_count(compiler):
    with pytest.raises(FormValidationError) as exc:
        compiler.compile(valid_draft(employees_count=-1))
    assert str(exc.value.path) == "employeesCount"
    assert exc.value.message == MSG_NEGATIVE


def test_fractional_employees_count(compiler):
    with pytest.raises(FormValidationError) as exc:
        compiler.compile(valid_draft(employees_count="2.5"))
    assert exc.value.message == MSG_INTEGER


def test_short_zip_code_fails_at_nested_path(compiler):
    draft = valid_draft(
        postal_address=AddressDraft(zip_code="12345", town=Reference(id=1)),
    )
    with pytest.raises(FormValidationError) as exc:
        compiler.compile(draft)
    assert str(exc.value.path) == "postalAddress.zipCode"
    assert exc.value.message == MSG_ZIP_CODE


def test_empty_zip_code_is_allowed(compiler):
    draft = valid_draft(postal_address=AddressDraft(zip_code="  ", town=Reference(id=1)))
    body = compiler.compile(draft).to_json()
    assert body["postalAddress"] == {"zipCode": None, "townId": 1}


def test_deep_path_for_town_coordinate(compiler):
    draft = valid_draft(
        postal_address=AddressDraft(
            zip_code="6200000", town=LocationDraft(name="Пермь", x="abc", y=1, z=1)
        ),
    )
    with pytest.raises(FormValidationError) as exc:
        compiler.compile(draft)
    assert str(exc.value.path) == "postalAddress.town.x"


def test_first_error_follows_field_order(compiler):
    draft = valid_draft(name="", rating=0, coordinates=CoordinatesDraft())
    errors = compiler.validate(draft)
    assert [str(e.path) for e in errors] == ["name", "rating", "coordinates.x", "coordinates.y"]
    assert errors[1].message == MSG_POSITIVE
    assert errors[2].message == MSG_REQUIRED
    with pytest.raises(FormValidationError) as exc:
        compiler.compile(draft)
    assert str(exc.value.path) == "name"


def test_unset_slot_requires_inline_fields(compiler):
    draft = OrganizationDraft(name="X", employees_count=1, type="PUBLIC", reuse_postal_address_as_official=True)
    paths = [str(e.path) for e in compiler.validate(draft)]
    assert "coordinates.x" in paths
    assert "postalAddress.town.name" in paths


def test_unknown_type(compiler):
    with pytest.raises(FormValidationError) as exc:
        compiler.compile(valid_draft(type="CHARITY"))
    assert str(exc.value.path) == "type"


def test_reuse_postal_address_omits_official(compiler):
    payload = compiler.compile(valid_draft(reuse_postal_address_as_official=True))
    body = payload.to_json()
    assert body["reusePostalAddressAsOfficial"] is True
    assert "officialAddress" not in body
    assert "officialAddressId" not in body
    assert payload.official_resolution == payload.postal_address


def test_reuse_skips_official_validation(compiler):
    draft = valid_draft(
        reuse_postal_address_as_official=True,
        official_address=AddressDraft(zip_code="1"),
    )
    assert compiler.validate(draft) == []


def test_created_collections(compiler):
    payload = compiler.compile(valid_draft())
    assert payload.created_collections == {
        Collection.COORDINATES,
        Collection.ADDRESSES,
        Collection.LOCATIONS,
    }
    payload = compiler.compile(
        valid_draft(coordinates=Reference(id=1), postal_address=Reference(id=2))
    )
    assert payload.created_collections == set()


def test_coordinates_policy_bounds():
    compiler = FormCompiler(CoordinatesPolicy(x_max=882, y_min_exclusive=-540))
    errors = compiler.validate(valid_draft(coordinates=CoordinatesDraft(x=883, y=-540)))
    assert [str(e.path) for e in errors] == ["coordinates.x", "coordinates.y"]


def test_reference_forms_use_root_paths(compiler):
    assert compiler.compile_coordinates(CoordinatesDraft(x=1, y="2")) == {"x": 1, "y": 2}
    with pytest.raises(FormValidationError) as exc:
        compiler.compile_location(LocationDraft(name="Омск", x=1, y=2))
    assert str(exc.value.path) == "z"
    body = compiler.compile_address(AddressDraft(zip_code="1234567", town=Reference(id=9)))
    assert body == {"zipCode": "1234567", "townId": 9}


async def test_unknown_reference_reported_on_id_path():
    gateway = FakeGateway()
    gateway.collection(Collection.COORDINATES).rows = {1: Coordinates(id=1, x=0, y=0)}
    table = await ReferenceTable(gateway).mount()
    compiler = FormCompiler(references=table)

    errors = compiler.validate(valid_draft(coordinates=Reference(id=2)))
    assert [(str(e.path), e.message) for e in errors] == [
        ("coordinatesId", MSG_UNKNOWN_REFERENCE),
        ("officialAddressId", MSG_UNKNOWN_REFERENCE),
    ]
    assert compiler.validate(valid_draft(coordinates=Reference(id=1), official_address=AddressDraft(
        zip_code="1234567", town=LocationDraft(name="Тверь", x=1, y=1, z=1),
    ))) == []


def test_edit_round_trip_preserves_references(compiler):
    town = Location(id=3, name="Казань", x=1, y=2, z=3.0)
    organization = Organization(
        id=42,
        name="Рога",
        employees_count=5,
        type=OrganizationType.TRUST,
        rating=2.0,
        coordinates=Coordinates(id=1, x=5, y=6),
        postal_address=Address(id=2, zip_code="4200000", town=town),
        official_address=Address(id=2, zip_code="4200000", town=town),
    )
    body = compiler.compile(draft_from_organization(organization)).to_json()
    assert body == {
        "name": "Рога",
        "employeesCount": 5,
        "type": "TRUST",
        "rating": 2.0,
        "coordinatesId": 1,
        "postalAddressId": 2,
        "officialAddressId": 2,
    }

    inline = compiler.compile(draft_from_organization(organization, inline=True)).to_json()
    assert inline["coordinates"] == {"x": 5, "y": 6}
    assert inline["officialAddress"]["town"]["name"] == "Казань"
