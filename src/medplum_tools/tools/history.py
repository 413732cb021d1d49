"""Version history tool (`manageHistory`)."""

from __future__ import annotations

from typing import Any

from medplum_tools.envelope import ResultEnvelope
from medplum_tools.medplum_client import MedplumClient
from medplum_tools.models import ToolArgs
from medplum_tools.router import ActionRouter, Route


class HistoryArgs(ToolArgs):
    action: str
    resource_type: str
    id: str
    version_id: str | None = None


async def list_history(client: MedplumClient, args: HistoryArgs) -> Any:
    """Return the history Bundle of one resource."""
    return await client.read_history(args.resource_type, args.id)


async def read_version(client: MedplumClient, args: HistoryArgs) -> Any:
    """Read one version of a resource."""
    if not args.version_id:
        return ResultEnvelope.failure("versionId is required for read-version")
    return await client.read_version(args.resource_type, args.id, args.version_id)


manage_history = ActionRouter(
    {
        "list": Route(list_history, HistoryArgs),
        "read-version": Route(read_version, HistoryArgs),
    },
    context_fields=("resourceType", "id"),
)

MANAGE_HISTORY = manage_history.tool(
    "manageHistory",
    "List the version history of a resource, or read one specific version.",
    {
        "resourceType": {"type": "string", "description": "FHIR resource type."},
        "id": {"type": "string", "description": "Resource ID."},
        "versionId": {"type": "string", "description": "Version to read (read-version)."},
    },
    required=["resourceType", "id"],
)

TOOLS = [MANAGE_HISTORY]
