"""The tool catalog: an immutable table of tool descriptors.

`build_catalog()` assembles the catalog once at startup from the
hand-written tools and, optionally, one create/get/update/delete/search
quintet per resource type. Hand-written tools win over generated ones
with the same name; two hand-written tools with the same name are a
startup error. Nothing is added or removed afterwards.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable, Iterator
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from medplum_tools import resources
from medplum_tools.descriptor import ToolDescriptor, ToolHandler
from medplum_tools.envelope import ResultEnvelope
from medplum_tools.errors import DuplicateToolError, UnknownToolError
from medplum_tools.models import ToolArgs
from medplum_tools.router import single

if TYPE_CHECKING:
    from medplum_tools.medplum_client import MedplumClient

logger = logging.getLogger(__name__)


class Catalog:
    """Read-only name -> ToolDescriptor table, in registration order."""

    def __init__(self, descriptors: Iterable[ToolDescriptor]) -> None:
        self._descriptors = tuple(descriptors)
        self._index = MappingProxyType({d.name: d for d in self._descriptors})

    def lookup(self, name: str) -> ToolDescriptor:
        """Return the descriptor named `name`.

        Raises:
            UnknownToolError: If no tool has that name.
        """
        try:
            return self._index[name]
        except KeyError:
            raise UnknownToolError(name) from None

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def __iter__(self) -> Iterator[ToolDescriptor]:
        return iter(self._descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)

    @property
    def names(self) -> list[str]:
        return [d.name for d in self._descriptors]

    def describe(self) -> list[dict[str, Any]]:
        """Discovery listing: `{name, description, parameterSchema}` per tool."""
        return [copy.deepcopy(d.describe()) for d in self._descriptors]


def build_catalog(
    tools: Iterable[ToolDescriptor],
    resource_types: Iterable[str] = (),
) -> Catalog:
    """Assemble the catalog.

    Args:
        tools: Hand-written tool descriptors.
        resource_types: Resource types to generate CRUD tools for.

    Raises:
        DuplicateToolError: If two hand-written tools share a name.
    """
    registered: dict[str, ToolDescriptor] = {}
    for descriptor in tools:
        if descriptor.name in registered:
            raise DuplicateToolError(descriptor.name)
        registered[descriptor.name] = descriptor

    generated = 0
    for resource_type in resource_types:
        for descriptor in generic_tools(resource_type):
            if descriptor.name in registered:
                logger.debug("Keeping hand-written %s over generated tool", descriptor.name)
                continue
            registered[descriptor.name] = descriptor
            generated += 1

    logger.info("Catalog built: %d tools (%d generated)", len(registered), generated)
    return Catalog(registered.values())


# --- Generic expansion ---


class GenericArgs(ToolArgs):
    id: str | None = None
    resource: dict[str, Any] | None = None
    updates: dict[str, Any] | None = None
    search_params: dict[str, Any] | None = None


_SEARCH_VALUE_SCHEMA = {
    "anyOf": [
        {"type": "string"},
        {"type": "number"},
        {"type": "boolean"},
        {"type": "array", "items": {"type": ["string", "number", "boolean"]}},
    ]
}


def _id_argument(resource_type: str) -> str:
    return f"{resource_type[0].lower()}{resource_type[1:]}Id"


def generic_tools(resource_type: str) -> list[ToolDescriptor]:
    """Create/get/update/delete/search tools bound to one resource type.

    The id argument is named after the type (e.g. `patientId`) and mapped
    to the canonical `id` through each descriptor's argument map.
    """
    id_arg = _id_argument(resource_type)
    id_schema = {"type": "string", "description": f"The ID of the {resource_type}."}
    context = {"resourceType": resource_type}

    async def _create(client: MedplumClient, args: GenericArgs) -> Any:
        return await resources.create(client, resource_type, args.resource or {})

    async def _get(client: MedplumClient, args: GenericArgs) -> Any:
        return await resources.read(client, resource_type, args.id)

    async def _update(client: MedplumClient, args: GenericArgs) -> Any:
        return await resources.update(client, resource_type, args.id, args.updates or {})

    async def _delete(client: MedplumClient, args: GenericArgs) -> None:
        await resources.delete(client, resource_type, args.id)

    async def _search(client: MedplumClient, args: GenericArgs) -> Any:
        result = await resources.search(client, resource_type, args.search_params)
        return ResultEnvelope(success=True, resources=result.resources, total=result.total)

    def _tool(
        name: str,
        description: str,
        properties: dict[str, Any],
        required: list[str],
        handler: ToolHandler,
        argument_map: dict[str, str] | None = None,
    ) -> ToolDescriptor:
        return ToolDescriptor(
            name=name,
            description=description,
            parameter_schema={
                "type": "object",
                "properties": properties,
                "required": list(required),
            },
            handler=handler,
            parse=GenericArgs.model_validate,
            argument_map=argument_map or {},
        )

    return [
        _tool(
            f"create{resource_type}",
            f"Creates a new {resource_type} resource.",
            {"resource": {"type": "object", "description": f"The {resource_type} data."}},
            ["resource"],
            single(_create, key="resource", context=context),
        ),
        _tool(
            f"get{resource_type}",
            f"Retrieves a {resource_type} by its ID. Returns null if it does not exist.",
            {id_arg: id_schema},
            [id_arg],
            single(_get, key="resource", reads=True, context=context),
            {id_arg: "id"},
        ),
        _tool(
            f"update{resource_type}",
            f"Updates fields of an existing {resource_type}.",
            {
                id_arg: id_schema,
                "updates": {"type": "object", "description": "The fields to change."},
            },
            [id_arg, "updates"],
            single(_update, key="resource", context=context),
            {id_arg: "id"},
        ),
        _tool(
            f"delete{resource_type}",
            f"Deletes a {resource_type} by its ID.",
            {id_arg: id_schema},
            [id_arg],
            single(_delete, key=None, context=context),
            {id_arg: "id"},
        ),
        _tool(
            f"search{resource_type}",
            f"Searches {resource_type} resources with FHIR search parameters.",
            {
                "searchParams": {
                    "type": "object",
                    "description": "FHIR search parameters; list values are combined.",
                    "additionalProperties": _SEARCH_VALUE_SCHEMA,
                }
            },
            [],
            single(_search, key=None, context=context),
        ),
    ]
