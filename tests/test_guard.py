"""Tests for the concurrent-deletion guard."""

import asyncio

from conftest import FakeCollection, settle
from orgregistry.exceptions import TransientGatewayError
from orgregistry.guard import DeletionGuard, GuardState, Navigator
from orgregistry.models import Collection, Organization
from orgregistry.sync import QueryCache

NOTICE = "Организация была удалена. Мы вернули вас на главную."


def organizations(*ids):
    return FakeCollection(
        Collection.ORGANIZATIONS, [Organization(id=i, name=f"Org {i}") for i in ids]
    )


async def test_deleted_while_viewing_redirects_once(push):
    orgs = organizations(42)
    navigator = Navigator()
    guard = DeletionGuard(
        lambda: orgs.get(42),
        navigator=navigator,
        notice=NOTICE,
        push=push,
        topic=Collection.ORGANIZATIONS,
    )
    assert await guard.start() is GuardState.READY
    assert guard.entity.id == 42

    del orgs.rows[42]
    await push.fire("organizations")
    await guard.wait_idle()
    await push.fire("organizations")
    await guard.wait_idle()

    assert guard.state is GuardState.NOT_FOUND_AFTER_SEEN
    assert guard.entity is None
    assert len(navigator.redirects) == 1
    assert navigator.take_notice("organizations") == NOTICE
    assert navigator.take_notice("organizations") is None
    await guard.close()


async def test_never_existing_id_is_cold_not_found():
    navigator = Navigator()
    guard = DeletionGuard(lambda: organizations().get(7), navigator=navigator, notice=NOTICE)
    assert await guard.start() is GuardState.NOT_FOUND_COLD
    assert guard.error.code == "REGISTRY_NOT_FOUND"
    assert navigator.redirects == []


async def test_polling_detects_deletion():
    orgs = organizations(42)
    navigator = Navigator()
    async with DeletionGuard(
        lambda: orgs.get(42), navigator=navigator, notice=NOTICE, poll_interval=0.01,
    ) as guard:
        del orgs.rows[42]
        await asyncio.sleep(0.05)
        await guard.wait_idle()
        assert guard.state is GuardState.NOT_FOUND_AFTER_SEEN
        assert len(navigator.redirects) == 1


async def test_failed_mutation_reports_not_found():
    orgs = organizations(42)
    navigator = Navigator()
    guard = DeletionGuard(lambda: orgs.get(42), navigator=navigator, notice=NOTICE)
    await guard.load()

    guard.report_not_found()
    guard.report_not_found()

    assert guard.terminal
    assert [r.target for r in navigator.redirects] == ["organizations"]


async def test_transient_error_is_retryable():
    orgs = organizations(42)
    orgs.fail_with = TransientGatewayError("Gateway unavailable")
    navigator = Navigator()
    guard = DeletionGuard(lambda: orgs.get(42), navigator=navigator, notice=NOTICE)

    assert await guard.load() is GuardState.ERROR
    orgs.fail_with = None
    assert await guard.retry() is GuardState.READY
    assert navigator.redirects == []


async def test_cache_invalidation_reloads_entity():
    orgs = organizations(42)
    cache = QueryCache()
    guard = DeletionGuard(
        lambda: orgs.get(42),
        navigator=Navigator(),
        notice=NOTICE,
        topic=Collection.ORGANIZATIONS,
        cache=cache,
    )
    await guard.start()
    orgs.rows[42] = Organization(id=42, name="Переименована")

    cache.invalidate(Collection.ORGANIZATIONS)
    await settle()
    await guard.wait_idle()

    assert guard.entity.name == "Переименована"
    await guard.close()
    assert cache.observer_count(Collection.ORGANIZATIONS) == 0
