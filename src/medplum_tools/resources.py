"""Generic resource operations over any FHIR resource type.

These functions sit between the tool handlers and the MedplumClient. They
own the few rules that apply to every resource type:

- create/upsert stamp `resourceType` into the submitted body,
- read turns "not found" into None,
- update merges a partial document over the stored one and pins the
  stored `resourceType` and `id`,
- search encodes parameters and flattens the result Bundle.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, NamedTuple
from urllib.parse import urlencode

from medplum_tools.errors import NotFoundError

if TYPE_CHECKING:
    from medplum_tools.medplum_client import MedplumClient

logger = logging.getLogger(__name__)

# FHIR combines comma-separated values with OR ("status=final,amended")
# and repeated parameters with AND ("date=ge2024-01-01&date=lt2025-01-01").
# These parameters are AND-combined when given a list; all others are
# comma-joined.
REPEATED_SEARCH_PARAMS = frozenset(
    {
        "_has",
        "_include",
        "_revinclude",
        "_lastUpdated",
        "authored",
        "birthdate",
        "date",
        "effective",
        "issued",
        "onset-date",
        "period",
    }
)


class SearchResult(NamedTuple):
    resources: list[dict[str, Any]]
    total: int


def _param_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def serialize_search_params(params: Mapping[str, Any] | None) -> str:
    """Encode search parameters as a FHIR query string.

    Scalars are sent as-is, booleans lowercase. Lists are comma-joined,
    except for REPEATED_SEARCH_PARAMS which become one parameter per item.
    None values are skipped.
    """
    pairs: list[tuple[str, str]] = []
    for name, value in (params or {}).items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            items = [_param_value(v) for v in value if v is not None]
            if not items:
                continue
            if name in REPEATED_SEARCH_PARAMS:
                pairs.extend((name, item) for item in items)
            else:
                pairs.append((name, ",".join(items)))
        else:
            pairs.append((name, _param_value(value)))
    return urlencode(pairs, safe=",:|/")


def unwrap_bundle(bundle: Any) -> SearchResult:
    """Flatten a searchset Bundle into its resources and total count."""
    bundle = bundle or {}
    resources = [
        entry["resource"]
        for entry in bundle.get("entry") or []
        if isinstance(entry, dict) and entry.get("resource")
    ]
    total = bundle.get("total")
    return SearchResult(resources, total if isinstance(total, int) else len(resources))


async def create(client: MedplumClient, resource_type: str, body: Mapping[str, Any]) -> Any:
    return await client.create_resource({**body, "resourceType": resource_type})


async def read(client: MedplumClient, resource_type: str, resource_id: str) -> Any | None:
    """Read one resource; returns None when it does not exist."""
    try:
        return await client.read_resource(resource_type, resource_id)
    except NotFoundError:
        logger.info("%s/%s not found", resource_type, resource_id)
        return None


async def update(
    client: MedplumClient,
    resource_type: str,
    resource_id: str,
    partial: Mapping[str, Any],
) -> Any:
    """Shallow-merge `partial` over the stored resource and save it.

    Identity comes from the stored resource: a `resourceType` or `id`
    inside `partial` is ignored.
    """
    existing = await client.read_resource(resource_type, resource_id)
    merged = {
        **existing,
        **partial,
        "resourceType": existing.get("resourceType", resource_type),
        "id": existing.get("id", resource_id),
    }
    return await client.update_resource(merged)


async def delete(client: MedplumClient, resource_type: str, resource_id: str) -> None:
    await client.delete_resource(resource_type, resource_id)


async def search(
    client: MedplumClient,
    resource_type: str,
    params: Mapping[str, Any] | None = None,
) -> SearchResult:
    query = serialize_search_params(params)
    logger.debug("Searching %s?%s", resource_type, query)
    bundle = await client.search(resource_type, query)
    return unwrap_bundle(bundle)


async def patch(
    client: MedplumClient,
    resource_type: str,
    resource_id: str,
    operations: list[dict[str, Any]],
) -> Any:
    """Apply JSON Patch operations; they are forwarded untouched."""
    return await client.patch_resource(resource_type, resource_id, operations)


async def upsert(
    client: MedplumClient,
    resource_type: str,
    body: Mapping[str, Any],
    search_params: Mapping[str, Any] | None = None,
) -> Any:
    """Update the resource matching `search_params`, or create it.

    Without search parameters there is nothing to match on, so this falls
    back to an update by id (when the body has one) or a create.
    """
    resource = {**body, "resourceType": resource_type}
    if search_params:
        return await client.upsert_resource(resource, serialize_search_params(search_params))
    if resource.get("id"):
        return await client.update_resource(resource)
    return await client.create_resource(resource)
