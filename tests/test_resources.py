"""Tests for the generic resource operations and search serialization."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from medplum_tools import resources
from medplum_tools.errors import NotFoundError, RemoteOperationError
from medplum_tools.resources import serialize_search_params, unwrap_bundle

# --- Search parameter serialization ---


def test_list_values_are_comma_joined() -> None:
    assert serialize_search_params({"status": ["final", "amended"]}) == "status=final,amended"


def test_date_ranges_are_repeated() -> None:
    query = serialize_search_params({"date": ["ge2024-01-01", "lt2025-01-01"]})

    assert query == "date=ge2024-01-01&date=lt2025-01-01"


def test_scalars_booleans_and_none() -> None:
    query = serialize_search_params(
        {"subject": "Patient/p1", "_count": 10, "active": True, "name": None}
    )

    assert query == "subject=Patient/p1&_count=10&active=true"


def test_token_values_keep_their_separator() -> None:
    query = serialize_search_params({"code": "http://loinc.org|1234-5"})

    assert query == "code=http://loinc.org|1234-5"


def test_empty_params() -> None:
    assert serialize_search_params(None) == ""
    assert serialize_search_params({"status": []}) == ""


def test_unwrap_bundle_uses_total_or_counts_entries() -> None:
    bundle = {"entry": [{"resource": {"id": "a"}}, {"resource": {"id": "b"}}, {"search": {}}]}

    assert unwrap_bundle(bundle) == ([{"id": "a"}, {"id": "b"}], 2)
    assert unwrap_bundle({**bundle, "total": 40}).total == 40
    assert unwrap_bundle(None) == ([], 0)


# --- Operations ---


@pytest.mark.asyncio
async def test_create_stamps_resource_type() -> None:
    client = AsyncMock()
    await resources.create(client, "Patient", {"resourceType": "Group", "active": True})

    client.create_resource.assert_awaited_once_with({"resourceType": "Patient", "active": True})


@pytest.mark.asyncio
async def test_read_not_found_returns_none() -> None:
    client = AsyncMock()
    client.read_resource.side_effect = NotFoundError(404, "Not found")

    assert await resources.read(client, "Patient", "ghost") is None


@pytest.mark.asyncio
async def test_read_propagates_other_faults() -> None:
    client = AsyncMock()
    client.read_resource.side_effect = RemoteOperationError(500, "Server error")

    with pytest.raises(RemoteOperationError):
        await resources.read(client, "Patient", "p1")


@pytest.mark.asyncio
async def test_update_merges_and_preserves_identity() -> None:
    client = AsyncMock()
    client.read_resource.return_value = {
        "resourceType": "Patient",
        "id": "p1",
        "active": True,
        "gender": "female",
    }

    await resources.update(
        client, "Patient", "p1", {"id": "p2", "resourceType": "Practitioner", "active": False}
    )

    client.update_resource.assert_awaited_once_with(
        {"resourceType": "Patient", "id": "p1", "active": False, "gender": "female"}
    )


@pytest.mark.asyncio
async def test_search_returns_resources_and_total() -> None:
    client = AsyncMock()
    client.search.return_value = {"total": 1, "entry": [{"resource": {"id": "o1"}}]}

    result = await resources.search(client, "Observation", {"code": "1234-5"})

    client.search.assert_awaited_once_with("Observation", "code=1234-5")
    assert result.resources == [{"id": "o1"}]
    assert result.total == 1


@pytest.mark.asyncio
async def test_patch_forwards_operations_untouched() -> None:
    client = AsyncMock()
    ops = [{"op": "test", "path": "/active", "value": True}]

    await resources.patch(client, "Patient", "p1", ops)

    client.patch_resource.assert_awaited_once_with("Patient", "p1", ops)


@pytest.mark.asyncio
async def test_upsert_with_search_is_conditional_update() -> None:
    client = AsyncMock()

    await resources.upsert(
        client, "Patient", {"active": True}, {"identifier": "http://mrn|123"}
    )

    client.upsert_resource.assert_awaited_once_with(
        {"active": True, "resourceType": "Patient"}, "identifier=http://mrn|123"
    )


@pytest.mark.asyncio
async def test_upsert_without_search_updates_or_creates() -> None:
    client = AsyncMock()

    await resources.upsert(client, "Patient", {"id": "p1"})
    await resources.upsert(client, "Patient", {"active": True})

    client.update_resource.assert_awaited_once_with({"id": "p1", "resourceType": "Patient"})
    client.create_resource.assert_awaited_once_with({"active": True, "resourceType": "Patient"})
