"""The catalog entry describing one invocable tool."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

import jsonschema

from medplum_tools.validation import compile_schema

if TYPE_CHECKING:
    from medplum_tools.envelope import ResultEnvelope
    from medplum_tools.medplum_client import MedplumClient
    from medplum_tools.models import ToolArgs

ToolHandler = Callable[["MedplumClient", "ToolArgs"], Awaitable["ResultEnvelope"]]
ArgsParser = Callable[[dict[str, Any]], "ToolArgs"]


@dataclass(frozen=True)
class ToolDescriptor:
    """A named, schema-described tool.

    Attributes:
        name: Unique tool name.
        description: What the tool does, for the calling agent.
        parameter_schema: JSON schema of the argument object.
        handler: Coroutine executing a validated call.
        parse: Builds the typed argument model from validated arguments.
        argument_map: Tool argument name -> canonical name, applied after
            schema validation and before parsing.
        discriminant: For consolidated tools, the field selecting the
            action. Its enum is enforced by the router, not the validator.
    """

    name: str
    description: str
    parameter_schema: Mapping[str, Any]
    handler: ToolHandler = field(repr=False, compare=False)
    parse: ArgsParser = field(repr=False, compare=False)
    argument_map: Mapping[str, str] = field(default_factory=dict)
    discriminant: str | None = None
    validator: jsonschema.Draft202012Validator = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "argument_map", MappingProxyType(dict(self.argument_map)))
        object.__setattr__(self, "validator", compile_schema(self.parameter_schema))

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameterSchema": self.parameter_schema,
        }
