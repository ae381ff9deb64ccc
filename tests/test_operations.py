"""Tests for the special operations service."""

from orgregistry.exceptions import GatewayRejectedError, NotFoundError
from orgregistry.models import Collection, OrganizationType
from orgregistry.services.operations import OperationsService, split_error_messages
from orgregistry.sync import QueryCache


def test_split_error_messages_keeps_record_prefix():
    assert split_error_messages("Ошибка в записи #3: name пустое; rating < 1") == [
        "Ошибка в записи #3: name пустое",
        "Ошибка в записи #3: rating < 1",
    ]
    assert split_error_messages("a, b") == ["a", "b"]
    assert split_error_messages(None) == []


async def test_queries(gateway):
    gateway.responses = {
        ("GET", "/api/operations/minimal-coordinates"): {"id": 1, "name": "Рога"},
        ("GET", "/api/operations/group-by-rating"): {"1.0": 2, "4.5": 1},
        ("GET", "/api/operations/count-by-type"): {"type": "TRUST", "count": 3},
    }
    service = OperationsService(gateway)

    assert (await service.find_minimal_coordinates()).id == 1
    assert await service.group_by_rating() == {1.0: 2, 4.5: 1}
    assert await service.count_by_type(OrganizationType.TRUST) == 3
    assert gateway.calls[-1][2] == {"type": "TRUST"}


async def test_dismiss_collects_per_record_outcomes(gateway):
    def dismiss(params):
        if params["organizationId"] == 2:
            return NotFoundError("organizations", 2)
        return {"message": "Уволено сотрудников: 5"}

    gateway.responses = {("POST", "/api/operations/dismiss-employees"): dismiss}
    cache = QueryCache()
    invalidated = []
    cache.register(Collection.ORGANIZATIONS, lambda: invalidated.append(True))

    report = await OperationsService(gateway, cache).dismiss_employees([1, 2, 3])

    assert [s.record for s in report.successes] == ["Организация #1", "Организация #3"]
    assert report.failures[0].record == "Организация #2"
    assert report.failures[0].code == "REGISTRY_NOT_FOUND"
    assert not report.ok
    assert invalidated == [True]
    assert len(report.lines()) == 3


async def test_absorb_failure_does_not_invalidate(gateway):
    gateway.responses = {
        ("POST", "/api/operations/absorb"): GatewayRejectedError(
            "Организация не может поглотить саму себя", status_code=400
        ),
    }
    cache = QueryCache()
    invalidated = []
    cache.register(Collection.ORGANIZATIONS, lambda: invalidated.append(True))

    report = await OperationsService(gateway, cache).absorb(1, 1)

    assert report.failures[0].messages == ["Организация не может поглотить саму себя"]
    assert invalidated == []
    assert gateway.calls[0][2] == {"absorbingId": 1, "absorbedId": 1}
