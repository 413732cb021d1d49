"""Tool invocation protocol: discovery and calls over the catalog.

A call goes through three steps:
1. Look the tool up by name (unknown name -> error response)
2. Validate the arguments against its schema (violations -> error response)
3. Run its handler, which always produces a ResultEnvelope

Concept — two kinds of failure:
    A call that never reached a handler (unknown tool, invalid arguments)
    is a protocol error: the response carries `isError: true`. A call that
    reached a handler always yields an envelope, even when Medplum said
    no; then `success: false` inside the envelope tells the agent what went
    wrong while the response itself is a normal one.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from medplum_tools.catalog import Catalog
from medplum_tools.envelope import ResultEnvelope, describe_fault
from medplum_tools.errors import ToolServerError
from medplum_tools.medplum_client import MedplumClient, get_client
from medplum_tools.validation import validate

logger = logging.getLogger(__name__)


def text_response(text: str, is_error: bool = False) -> dict[str, Any]:
    """Wrap a text payload in the invocation response shape."""
    response: dict[str, Any] = {"content": [{"type": "text", "text": text}]}
    if is_error:
        response["isError"] = True
    return response


def error_response(message: str) -> dict[str, Any]:
    payload = json.dumps({"error": message, "success": False}, separators=(",", ":"))
    return text_response(payload, is_error=True)


class Dispatcher:
    """Answers discovery and invocation requests for one catalog.

    Attributes:
        catalog: The immutable tool catalog.
    """

    def __init__(self, catalog: Catalog, client: MedplumClient | None = None) -> None:
        self.catalog = catalog
        self._client = client

    async def _get_client(self) -> MedplumClient:
        if self._client is None:
            self._client = await get_client()
        return self._client

    def list_tools(self) -> list[dict[str, Any]]:
        """Discovery: every tool's name, description and parameter schema."""
        return self.catalog.describe()

    async def invoke(self, tool_name: str, arguments: Any = None) -> ResultEnvelope:
        """Look up, validate and run one tool call.

        Raises:
            UnknownToolError: If no tool has that name.
            ValidationError: If the arguments violate the tool's schema.
        """
        descriptor = self.catalog.lookup(tool_name)
        args = validate(descriptor, arguments)
        client = await self._get_client()
        logger.info("Calling tool %s", tool_name)
        return await descriptor.handler(client, args)

    async def call_tool(self, tool_name: str, arguments: Any = None) -> dict[str, Any]:
        """Run a call and build the protocol response.

        Never raises: unknown tools, validation rejections and unexpected
        faults all come back as `isError` responses.
        """
        try:
            envelope = await self.invoke(tool_name, arguments)
        except ToolServerError as exc:
            logger.warning("Rejected call to %s: %s", tool_name, exc)
            return error_response(str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Tool %s failed outside its handler", tool_name)
            return error_response(describe_fault(exc))
        return text_response(envelope.to_json())
