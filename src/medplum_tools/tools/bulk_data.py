"""Bulk data tool (`bulkData`): system-level $export and $import.

Both operations are asynchronous on the server; the response points at a
status URL to poll.
"""

from __future__ import annotations

from typing import Any

from medplum_tools.envelope import ResultEnvelope
from medplum_tools.medplum_client import MedplumClient, fhir_path
from medplum_tools.models import ToolArgs
from medplum_tools.router import ActionRouter, Route


class BulkDataArgs(ToolArgs):
    action: str
    resource_types: list[str] | None = None
    since: str | None = None
    output_format: str | None = None
    url: str | None = None


async def bulk_export(client: MedplumClient, args: BulkDataArgs) -> Any:
    """Kick off a system-level $export.

    Returns:
        Whatever the server answers; usually nothing, with the status URL
        in the Content-Location header.
    """
    params: dict[str, str] = {}
    if args.resource_types:
        params["_type"] = ",".join(args.resource_types)
    if args.since:
        params["_since"] = args.since
    if args.output_format:
        params["_outputFormat"] = args.output_format
    return await client.get(fhir_path("$export"), params=params or None)


async def bulk_import(client: MedplumClient, args: BulkDataArgs) -> Any:
    """Kick off an $import of the NDJSON data at `url`."""
    if not args.url:
        return ResultEnvelope.failure("url is required for import")
    parameters = {
        "resourceType": "Parameters",
        "parameter": [{"name": "input", "valueUrl": args.url}],
    }
    return await client.post(fhir_path("$import"), parameters)


bulk_data = ActionRouter(
    {
        "export": Route(bulk_export, BulkDataArgs),
        "import": Route(bulk_import, BulkDataArgs),
    }
)

BULK_DATA = bulk_data.tool(
    "bulkData",
    "Start a FHIR bulk data export, or import NDJSON data from a URL.",
    {
        "resourceTypes": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Resource types to export (export). Defaults to all.",
        },
        "since": {"type": "string", "description": "Only export changes after this instant."},
        "outputFormat": {"type": "string", "description": "Export format, e.g. application/fhir+ndjson."},
        "url": {"type": "string", "description": "Location of the data to import (import)."},
    },
)

TOOLS = [BULK_DATA]
