"""Resource management tools.

- manageResource:       create/read/update/delete/search/patch/upsert on any type
- manageClinicalReport: the same CRUD set restricted to DiagnosticReport and Procedure

FHIR endpoints used (relative to the FHIR base):
- POST   /{type}              create
- GET    /{type}/{id}         read
- PUT    /{type}/{id}         update
- DELETE /{type}/{id}         delete
- GET    /{type}?{query}      search
- PATCH  /{type}/{id}         JSON Patch
- PUT    /{type}?{query}      conditional update (upsert)
"""

from __future__ import annotations

from typing import Any

from medplum_tools import resources
from medplum_tools.envelope import ResultEnvelope
from medplum_tools.medplum_client import MedplumClient
from medplum_tools.models import ToolArgs
from medplum_tools.router import ActionRouter, Route

SEARCH_PARAMS_SCHEMA = {
    "type": "object",
    "description": (
        "FHIR search parameters. List values are comma-joined (OR), except "
        "date-range and _include style parameters, which are repeated (AND)."
    ),
    "additionalProperties": {
        "anyOf": [
            {"type": "string"},
            {"type": "number"},
            {"type": "boolean"},
            {"type": "array", "items": {"type": ["string", "number", "boolean"]}},
        ]
    },
}


class ResourceArgs(ToolArgs):
    action: str
    resource_type: str


class CreateArgs(ResourceArgs):
    resource: dict[str, Any] | None = None


class ReadArgs(ResourceArgs):
    id: str | None = None


class UpdateArgs(ResourceArgs):
    id: str | None = None
    resource: dict[str, Any] | None = None


class DeleteArgs(ResourceArgs):
    id: str | None = None


class SearchArgs(ResourceArgs):
    search_params: dict[str, Any] | None = None


class PatchArgs(ResourceArgs):
    id: str | None = None
    patch: list[dict[str, Any]] | None = None


class UpsertArgs(ResourceArgs):
    resource: dict[str, Any] | None = None
    upsert_search: dict[str, Any] | None = None


def _id_required(action: str) -> ResultEnvelope:
    return ResultEnvelope.failure(f"ID is required for {action} action")


# --- manageResource ---


async def _create(client: MedplumClient, args: CreateArgs) -> Any:
    """Create a resource of `resourceType`."""
    if args.resource is None:
        return ResultEnvelope.failure("Resource data is required")
    return await resources.create(client, args.resource_type, args.resource)


async def _read(client: MedplumClient, args: ReadArgs) -> Any:
    """Read one resource; a missing one reads as null."""
    if not args.id:
        return _id_required("read")
    return await resources.read(client, args.resource_type, args.id)


async def _update(client: MedplumClient, args: UpdateArgs) -> Any:
    """Merge `resource` into the stored resource and save it."""
    if not args.id:
        return _id_required("update")
    if args.resource is None:
        return ResultEnvelope.failure("Resource data is required")
    return await resources.update(client, args.resource_type, args.id, args.resource)


async def _delete(client: MedplumClient, args: DeleteArgs) -> Any:
    """Delete one resource."""
    if not args.id:
        return _id_required("delete")
    await resources.delete(client, args.resource_type, args.id)
    return None


async def _search(client: MedplumClient, args: SearchArgs) -> ResultEnvelope:
    """Search a type and return the matching resources with the total."""
    result = await resources.search(client, args.resource_type, args.search_params)
    return ResultEnvelope(success=True, resources=result.resources, total=result.total)


async def _patch(client: MedplumClient, args: PatchArgs) -> Any:
    """Apply JSON Patch operations to one resource."""
    if not args.id:
        return _id_required("patch")
    if args.patch is None:
        return ResultEnvelope.failure("Patch operations are required for patch action")
    return await resources.patch(client, args.resource_type, args.id, args.patch)


async def _upsert(client: MedplumClient, args: UpsertArgs) -> Any:
    """Conditionally update by `upsertSearch`, or update/create by id."""
    if args.resource is None:
        return ResultEnvelope.failure("Resource data is required")
    return await resources.upsert(
        client, args.resource_type, args.resource, args.upsert_search
    )


manage_resource = ActionRouter(
    {
        "create": Route(_create, CreateArgs, key="resource"),
        "read": Route(_read, ReadArgs, key="resource", reads=True),
        "update": Route(_update, UpdateArgs, key="resource"),
        "delete": Route(_delete, DeleteArgs, key=None),
        "search": Route(_search, SearchArgs, key=None),
        "patch": Route(_patch, PatchArgs, key="resource"),
        "upsert": Route(_upsert, UpsertArgs, key="resource"),
    },
    context_fields=("resourceType",),
)

MANAGE_RESOURCE = manage_resource.tool(
    "manageResource",
    (
        "Create, read, update, delete, search, patch or upsert any FHIR resource. "
        "A read of a missing resource succeeds with resource=null."
    ),
    {
        "resourceType": {
            "type": "string",
            "description": "FHIR resource type (e.g. Patient, Observation).",
        },
        "id": {
            "type": "string",
            "description": "Resource ID (read, update, delete, patch).",
        },
        "resource": {
            "type": "object",
            "description": "Resource data (create, upsert) or fields to change (update).",
        },
        "searchParams": SEARCH_PARAMS_SCHEMA,
        "patch": {
            "type": "array",
            "description": "JSON Patch operations (patch).",
            "items": {"type": "object"},
        },
        "upsertSearch": {
            "type": "object",
            "description": "Search parameters identifying the resource to upsert.",
        },
    },
    required=["resourceType"],
)


# --- manageClinicalReport ---

CLINICAL_REPORT_TYPES = ["DiagnosticReport", "Procedure"]


class ReportCreateArgs(ResourceArgs):
    data: dict[str, Any] | None = None


class ReportUpdateArgs(ResourceArgs):
    id: str | None = None
    data: dict[str, Any] | None = None


async def _create_report(client: MedplumClient, args: ReportCreateArgs) -> Any:
    """Create a DiagnosticReport or Procedure from `data`."""
    if args.data is None:
        return ResultEnvelope.failure("Data is required for create action")
    return await resources.create(client, args.resource_type, args.data)


async def _update_report(client: MedplumClient, args: ReportUpdateArgs) -> Any:
    """Merge `data` into a stored DiagnosticReport or Procedure."""
    if not args.id:
        return _id_required("update")
    if args.data is None:
        return ResultEnvelope.failure("Data is required for update action")
    return await resources.update(client, args.resource_type, args.id, args.data)


manage_clinical_report = ActionRouter(
    {
        "create": Route(_create_report, ReportCreateArgs, key="resource"),
        "read": Route(_read, ReadArgs, key="resource", reads=True),
        "update": Route(_update_report, ReportUpdateArgs, key="resource"),
        "delete": Route(_delete, DeleteArgs, key=None),
        "search": Route(_search, SearchArgs, key=None),
    },
    context_fields=("resourceType",),
)

MANAGE_CLINICAL_REPORT = manage_clinical_report.tool(
    "manageClinicalReport",
    "Create, read, update, delete or search DiagnosticReport and Procedure resources.",
    {
        "resourceType": {
            "type": "string",
            "enum": CLINICAL_REPORT_TYPES,
            "description": "DiagnosticReport or Procedure.",
        },
        "id": {"type": "string", "description": "Resource ID (read, update, delete)."},
        "data": {
            "type": "object",
            "description": "Report data (create) or fields to change (update).",
        },
        "searchParams": SEARCH_PARAMS_SCHEMA,
    },
    required=["resourceType"],
)

TOOLS = [MANAGE_RESOURCE, MANAGE_CLINICAL_REPORT]
