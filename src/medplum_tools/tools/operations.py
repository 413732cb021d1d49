"""FHIR operations and super-admin tasks.

- executeFhirOperation: $validate, ValueSet/$expand, CodeSystem/$lookup,
  CodeSystem/$validate-code
- executeAdminTask:     /admin/super/* maintenance endpoints (super admins only)

Both take their inputs in a free-form `parameters` object, keyed by what
the selected operation needs.
"""

from __future__ import annotations

from typing import Any

from medplum_tools.envelope import ResultEnvelope
from medplum_tools.medplum_client import MedplumClient, fhir_path
from medplum_tools.models import ToolArgs
from medplum_tools.router import ActionRouter, Route

PARAMETERS_SCHEMA = {
    "type": "object",
    "description": "Inputs of the selected operation.",
    "additionalProperties": True,
}


class OperationArgs(ToolArgs):
    operation: str
    parameters: dict[str, Any]


class AdminTaskArgs(ToolArgs):
    task: str
    parameters: dict[str, Any]


def _missing(parameters: dict[str, Any], *names: str) -> ResultEnvelope | None:
    absent = [name for name in names if not parameters.get(name)]
    if not absent:
        return None
    return ResultEnvelope.failure("parameters must include " + ", ".join(absent))


# --- executeFhirOperation ---


async def validate_resource(client: MedplumClient, args: OperationArgs) -> Any:
    """POST the resource to /{type}/$validate; the answer is an OperationOutcome."""
    problem = _missing(args.parameters, "resource")
    if problem:
        return problem
    resource = args.parameters["resource"]
    resource_type = args.parameters.get("resourceType") or resource.get("resourceType")
    if not resource_type:
        return ResultEnvelope.failure("parameters must include resourceType")
    return await client.post(
        fhir_path(resource_type, "$validate"), {**resource, "resourceType": resource_type}
    )


async def expand_valueset(client: MedplumClient, args: OperationArgs) -> Any:
    """Expand a ValueSet, optionally filtered by text."""
    problem = _missing(args.parameters, "url")
    if problem:
        return problem
    params = {"url": args.parameters["url"]}
    if args.parameters.get("filter"):
        params["filter"] = args.parameters["filter"]
    return await client.get(fhir_path("ValueSet", "$expand"), params=params)


async def lookup_code(client: MedplumClient, args: OperationArgs) -> Any:
    """Look up a code in a CodeSystem."""
    problem = _missing(args.parameters, "system", "code")
    if problem:
        return problem
    params = {"system": args.parameters["system"], "code": args.parameters["code"]}
    return await client.get(fhir_path("CodeSystem", "$lookup"), params=params)


async def validate_code(client: MedplumClient, args: OperationArgs) -> Any:
    """Check that a code exists in a CodeSystem."""
    problem = _missing(args.parameters, "system", "code")
    if problem:
        return problem
    params = {"system": args.parameters["system"], "code": args.parameters["code"]}
    if args.parameters.get("display"):
        params["display"] = args.parameters["display"]
    return await client.get(fhir_path("CodeSystem", "$validate-code"), params=params)


fhir_operations = ActionRouter(
    {
        "validate-resource": Route(validate_resource, OperationArgs),
        "expand-valueset": Route(expand_valueset, OperationArgs),
        "lookup-code": Route(lookup_code, OperationArgs),
        "validate-code": Route(validate_code, OperationArgs),
    },
    discriminant="operation",
    echo_as="action",
)

EXECUTE_FHIR_OPERATION = fhir_operations.tool(
    "executeFhirOperation",
    (
        "Execute a standard FHIR operation. parameters by operation: "
        "validate-resource {resource, resourceType?}; expand-valueset {url, filter?}; "
        "lookup-code {system, code}; validate-code {system, code, display?}."
    ),
    {"parameters": PARAMETERS_SCHEMA},
    required=["parameters"],
    discriminant_description="The FHIR operation to execute.",
)


# --- executeAdminTask ---


async def reindex(client: MedplumClient, args: AdminTaskArgs) -> Any:
    """Reindex every resource of the given types."""
    problem = _missing(args.parameters, "resourceTypes")
    if problem:
        return problem
    return await client.post(
        "admin/super/reindex", {"resourceTypes": args.parameters["resourceTypes"]}
    )


async def rebuild_compartments(client: MedplumClient, args: AdminTaskArgs) -> Any:
    """Recompute compartments, for one resource or a whole type."""
    body = {k: args.parameters[k] for k in ("resourceType", "id") if args.parameters.get(k)}
    return await client.post("admin/super/rebuild-compartments", body)


async def purge(client: MedplumClient, args: AdminTaskArgs) -> Any:
    """Delete resources of a type last updated before a given instant."""
    problem = _missing(args.parameters, "resourceType", "before")
    if problem:
        return problem
    return await client.post(
        "admin/super/purge",
        {"resourceType": args.parameters["resourceType"], "before": args.parameters["before"]},
    )


async def force_set_password(client: MedplumClient, args: AdminTaskArgs) -> Any:
    """Set a user's password without the reset flow."""
    problem = _missing(args.parameters, "userId", "password")
    if problem:
        return problem
    return await client.post(
        "admin/super/setpassword",
        {
            "user": {"reference": f"User/{args.parameters['userId']}"},
            "password": args.parameters["password"],
        },
    )


admin_tasks = ActionRouter(
    {
        "reindex": Route(reindex, AdminTaskArgs),
        "rebuild-compartments": Route(rebuild_compartments, AdminTaskArgs),
        "purge": Route(purge, AdminTaskArgs),
        "force-set-password": Route(force_set_password, AdminTaskArgs),
    },
    discriminant="task",
    echo_as="action",
)

EXECUTE_ADMIN_TASK = admin_tasks.tool(
    "executeAdminTask",
    (
        "Execute a super-admin maintenance task. parameters by task: "
        "reindex {resourceTypes}; rebuild-compartments {resourceType?, id?}; "
        "purge {resourceType, before}; force-set-password {userId, password}."
    ),
    {"parameters": PARAMETERS_SCHEMA},
    required=["parameters"],
    discriminant_description="The administrative task to perform.",
)

TOOLS = [EXECUTE_FHIR_OPERATION, EXECUTE_ADMIN_TASK]
