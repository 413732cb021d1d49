"""Single-operation tools.

- whoAmI:     the login's profile, project and membership (GET /auth/me)
- graphql:    POST /fhir/R4/$graphql
- sendEmail:  POST /email/v1/send
- postBundle: POST a batch or transaction Bundle to the FHIR base
- apiRequest: raw call to any Medplum endpoint, for what no other tool covers
"""

from __future__ import annotations

from typing import Any, Literal
from urllib.parse import urlencode

from medplum_tools.descriptor import ToolDescriptor, ToolHandler
from medplum_tools.envelope import ResultEnvelope
from medplum_tools.medplum_client import MedplumClient, fhir_path
from medplum_tools.models import EmptyArgs, ToolArgs
from medplum_tools.router import single


def _tool(
    name: str,
    description: str,
    properties: dict[str, Any],
    required: list[str],
    model: type[ToolArgs],
    handler: ToolHandler,
) -> ToolDescriptor:
    return ToolDescriptor(
        name=name,
        description=description,
        parameter_schema={"type": "object", "properties": properties, "required": required},
        handler=handler,
        parse=model.model_validate,
    )


# --- whoAmI ---


async def who_am_i(client: MedplumClient, args: EmptyArgs) -> Any:
    """Return the auth/me document of the current login."""
    me = await client.get_profile()
    if not me or not me.get("profile"):
        return ResultEnvelope.failure("Not authenticated or profile not found.")
    return me


WHO_AM_I = _tool(
    "whoAmI",
    "Return the authenticated login's profile, project and project membership.",
    {},
    [],
    EmptyArgs,
    single(who_am_i),
)


# --- graphql ---


class GraphqlArgs(ToolArgs):
    query: str
    operation_name: str | None = None
    variables: dict[str, Any] | None = None


async def graphql(client: MedplumClient, args: GraphqlArgs) -> Any:
    """Run a GraphQL query against the FHIR data."""
    body: dict[str, Any] = {"query": args.query}
    if args.operation_name:
        body["operationName"] = args.operation_name
    if args.variables:
        body["variables"] = args.variables
    return await client.post(fhir_path("$graphql"), body)


GRAPHQL = _tool(
    "graphql",
    "Execute a GraphQL query against the FHIR data.",
    {
        "query": {"type": "string", "description": "The GraphQL query."},
        "operationName": {"type": "string"},
        "variables": {"type": "object"},
    },
    ["query"],
    GraphqlArgs,
    single(graphql),
)


# --- sendEmail ---


class EmailArgs(ToolArgs):
    to: str | list[str]
    subject: str
    text: str | None = None
    html: str | None = None
    cc: str | list[str] | None = None
    bcc: str | list[str] | None = None


async def send_email(client: MedplumClient, args: EmailArgs) -> Any:
    """Send an email; at least one of text or html is needed."""
    if not args.text and not args.html:
        return ResultEnvelope.failure("text or html is required")
    return await client.post("email/v1/send", args.model_dump(exclude_none=True))


_ADDRESSES = {"anyOf": [{"type": "string"}, {"type": "array", "items": {"type": "string"}}]}

SEND_EMAIL = _tool(
    "sendEmail",
    "Send an email through the Medplum server (requires the email feature on the project).",
    {
        "to": {**_ADDRESSES, "description": "Recipient address(es)."},
        "subject": {"type": "string"},
        "text": {"type": "string", "description": "Plain-text body."},
        "html": {"type": "string", "description": "HTML body."},
        "cc": _ADDRESSES,
        "bcc": _ADDRESSES,
    },
    ["to", "subject"],
    EmailArgs,
    single(send_email),
)


# --- postBundle ---


class BundleArgs(ToolArgs):
    bundle: dict[str, Any]


async def post_bundle(client: MedplumClient, args: BundleArgs) -> Any:
    """POST a batch or transaction Bundle to the FHIR base URL."""
    if args.bundle.get("resourceType") != "Bundle":
        return ResultEnvelope.failure("bundle must be a Bundle resource")
    return await client.post(fhir_path(), args.bundle)


POST_BUNDLE = _tool(
    "postBundle",
    "Execute a FHIR batch or transaction Bundle.",
    {"bundle": {"type": "object", "description": "A Bundle of type batch or transaction."}},
    ["bundle"],
    BundleArgs,
    single(post_bundle),
)


# --- apiRequest ---


class ApiRequestArgs(ToolArgs):
    method: Literal["GET", "POST", "PUT", "PATCH", "DELETE"]
    path: str
    query_params: dict[str, Any] | None = None
    body: Any = None


def build_request_path(path: str, query_params: dict[str, Any] | None) -> str:
    """Relative request path with an encoded query; list values are repeated."""
    path = path.lstrip("/")
    if not query_params:
        return path
    pairs = []
    for name, value in query_params.items():
        values = value if isinstance(value, list) else [value]
        for item in values:
            if isinstance(item, bool):
                item = "true" if item else "false"
            pairs.append((name, str(item)))
    return f"{path}?{urlencode(pairs)}" if pairs else path


async def api_request(client: MedplumClient, args: ApiRequestArgs) -> Any:
    """Send a raw request and return the decoded response body."""
    path = build_request_path(args.path, args.query_params)
    if args.method == "GET":
        return await client.get(path)
    if args.method == "POST":
        return await client.post(path, args.body)
    if args.method == "PUT":
        return await client.put(path, args.body)
    if args.method == "PATCH":
        return await client.patch(path, args.body)
    return await client.delete(path)


API_REQUEST = _tool(
    "apiRequest",
    (
        "Send a raw request to any Medplum endpoint (FHIR, admin, auth, ...). "
        "Use when no dedicated tool covers the operation."
    ),
    {
        "method": {"type": "string", "enum": ["GET", "POST", "PUT", "PATCH", "DELETE"]},
        "path": {
            "type": "string",
            "description": "Path relative to the server, e.g. fhir/R4/Patient or admin/projects.",
        },
        "queryParams": {
            "type": "object",
            "description": "Query parameters; list values are repeated.",
        },
        "body": {"description": "JSON body (POST, PUT, PATCH)."},
    },
    ["method", "path"],
    ApiRequestArgs,
    single(api_request),
)

TOOLS = [WHO_AM_I, GRAPHQL, SEND_EMAIL, POST_BUNDLE, API_REQUEST]
