"""Base classes for typed tool arguments.

Tool arguments arrive as camelCase JSON ("resourceType", "searchParams").
Argument models use snake_case attributes and accept the camelCase names
through generated aliases.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ToolArgs(BaseModel):
    """Typed arguments of one tool (or one action of a consolidated tool)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_arguments(self) -> dict[str, Any]:
        """The arguments under their wire (camelCase) names."""
        return self.model_dump(by_alias=True)


class EmptyArgs(ToolArgs):
    """Arguments of tools that take none."""


class UnroutedArgs(ToolArgs):
    """Arguments whose discriminant matched no route; kept as-is."""

    model_config = ConfigDict(extra="allow")
