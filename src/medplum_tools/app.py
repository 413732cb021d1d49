"""FastAPI server: the HTTP entry point for calling agents.

Endpoints:

- GET  /health      Simple check that the server is running
- GET  /tools       Discovery: every tool's name, description and schema
- POST /tools/call  Invoke one tool: {tool_name, arguments}

A call always answers 200 with the invocation response. Whether the call
worked is in the payload (`isError`, or `success` inside the envelope
text), not in the HTTP status.

Run locally with:
    uvicorn medplum_tools.app:app --reload
"""

import logging
import sys
from typing import Any

from fastapi import Depends, FastAPI
from pydantic import BaseModel, Field

from medplum_tools.catalog import build_catalog
from medplum_tools.config import LOG_LEVEL, MEDPLUM_GENERIC_TOOLS
from medplum_tools.dispatcher import Dispatcher
from medplum_tools.resource_types import RESOURCE_TYPES
from medplum_tools.tools import ALL_TOOLS

logging.basicConfig(
    stream=sys.stderr,
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Medplum Tool Server",
    description="Tool dispatch for AI agents working with a Medplum FHIR server",
    version="0.1.0",
)

_dispatcher: Dispatcher | None = None


def get_dispatcher() -> Dispatcher:
    """Build the catalog on first use and share one Dispatcher."""
    global _dispatcher  # noqa: PLW0603
    if _dispatcher is None:
        resource_types = RESOURCE_TYPES if MEDPLUM_GENERIC_TOOLS else ()
        _dispatcher = Dispatcher(build_catalog(ALL_TOOLS, resource_types))
    return _dispatcher


class ToolInfo(BaseModel):
    """One discovery entry."""

    name: str
    description: str
    parameter_schema: dict[str, Any] = Field(alias="parameterSchema")


class CallToolRequest(BaseModel):
    """What the client sends to /tools/call."""

    tool_name: str
    arguments: dict[str, Any] | None = None


class TextContent(BaseModel):
    type: str = "text"
    text: str


class CallToolResponse(BaseModel):
    """What /tools/call sends back."""

    content: list[TextContent]
    isError: bool | None = None


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint. Returns 200 if the server is running."""
    return {"status": "ok"}


@app.get("/tools", response_model=list[ToolInfo], response_model_by_alias=True)
async def list_tools(dispatcher: Dispatcher = Depends(get_dispatcher)) -> list[dict[str, Any]]:
    """List every tool in the catalog."""
    return dispatcher.list_tools()


@app.post("/tools/call", response_model=CallToolResponse, response_model_exclude_none=True)
async def call_tool(
    request: CallToolRequest,
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """Invoke one tool.

    Unknown tools and invalid arguments come back with `isError: true`;
    everything else carries the tool's result envelope as JSON text.
    """
    return await dispatcher.call_tool(request.tool_name, request.arguments)
