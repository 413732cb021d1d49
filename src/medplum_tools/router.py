"""Action routing for consolidated tools.

A consolidated tool multiplexes several operations behind one name and a
discriminant field (usually "action"). The router maps each allowed value
of that field to exactly one Route. Each call is a single-shot dispatch:
parse the arguments into the route's model, pass the authentication gate,
run the handler inside the result normalizer.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from medplum_tools.descriptor import ToolDescriptor, ToolHandler
from medplum_tools.envelope import ResultEnvelope, run
from medplum_tools.errors import UnknownActionError
from medplum_tools.models import ToolArgs, UnroutedArgs

if TYPE_CHECKING:
    from medplum_tools.medplum_client import MedplumClient

logger = logging.getLogger(__name__)

Operation = Callable[["MedplumClient", Any], Awaitable[Any]]


@dataclass(frozen=True)
class Route:
    """One action of a consolidated tool.

    Attributes:
        handler: Coroutine taking (client, typed args). It returns a plain
            value, or a ResultEnvelope to short-circuit (missing fields).
        model: The typed argument model of this action.
        key: Envelope field receiving a plain return value.
        reads: Whether a not-found fault means "no such resource" (null result).
    """

    handler: Operation
    model: type[ToolArgs]
    key: str | None = "data"
    reads: bool = False


async def _gated(client: MedplumClient, operation: Operation, args: ToolArgs) -> Any:
    await client.ensure_session()
    return await operation(client, args)


class ActionRouter:
    """Dispatches a consolidated tool's calls on its discriminant field."""

    def __init__(
        self,
        routes: Mapping[str, Route],
        *,
        discriminant: str = "action",
        echo_as: str = "action",
        context_fields: Iterable[str] = (),
    ) -> None:
        self.routes = MappingProxyType(dict(routes))
        self.discriminant = discriminant
        self.echo_as = echo_as
        self.context_fields = tuple(context_fields)

    @property
    def actions(self) -> tuple[str, ...]:
        return tuple(self.routes)

    def parse(self, args: dict[str, Any]) -> ToolArgs:
        """Build the closed argument model selected by the discriminant."""
        route = self.routes.get(args.get(self.discriminant))
        if route is None:
            return UnroutedArgs.model_validate(args)
        return route.model.model_validate(args)

    def context(self, args: ToolArgs) -> dict[str, Any]:
        """Routing fields echoed back in every envelope of this tool."""
        fields = args.to_arguments()
        context = {self.echo_as: fields.get(self.discriminant)}
        for name in self.context_fields:
            if fields.get(name) is not None:
                context[name] = fields[name]
        return context

    async def dispatch(self, client: MedplumClient, args: ToolArgs) -> ResultEnvelope:
        value = args.to_arguments().get(self.discriminant)
        context = self.context(args)
        route = self.routes.get(value)
        if route is None:
            error = UnknownActionError(self.discriminant, value, self.actions)
            logger.warning("%s", error)
            return ResultEnvelope.failure(str(error), **context)

        logger.info("Routing %s=%s", self.discriminant, value)
        return await run(
            lambda: _gated(client, route.handler, args),
            key=route.key,
            context=context,
            missing_as_null=route.reads,
        )

    def tool(
        self,
        name: str,
        description: str,
        properties: Mapping[str, Any],
        required: Iterable[str] = (),
        discriminant_description: str = "The operation to perform.",
    ) -> ToolDescriptor:
        """Build the catalog entry of this consolidated tool.

        The discriminant's enum is taken from the route table, so the
        published schema and the dispatch table cannot disagree.
        """
        schema = {
            "type": "object",
            "properties": {
                self.discriminant: {
                    "type": "string",
                    "enum": list(self.actions),
                    "description": discriminant_description,
                },
                **properties,
            },
            "required": [self.discriminant, *required],
        }
        return ToolDescriptor(
            name=name,
            description=description,
            parameter_schema=schema,
            handler=self.dispatch,
            parse=self.parse,
            discriminant=self.discriminant,
        )


def single(
    operation: Operation,
    *,
    key: str | None = "data",
    reads: bool = False,
    context: Mapping[str, Any] | None = None,
) -> ToolHandler:
    """Handler for a tool that performs one operation (no discriminant)."""

    async def handler(client: MedplumClient, args: ToolArgs) -> ResultEnvelope:
        return await run(
            lambda: _gated(client, operation, args),
            key=key,
            context=context,
            missing_as_null=reads,
        )

    return handler
