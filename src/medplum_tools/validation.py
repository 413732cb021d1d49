"""Schema validation of tool arguments.

Validation happens before any handler runs and never touches Medplum.
The JSON schema published in the catalog is the contract: required
fields, primitive types and enumerations are checked with jsonschema
(Draft 2020-12). Only then are the arguments parsed into the tool's typed
pydantic model.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import jsonschema
import pydantic

from medplum_tools.errors import ValidationError

if TYPE_CHECKING:
    from medplum_tools.descriptor import ToolDescriptor
    from medplum_tools.models import ToolArgs


def compile_schema(schema: Mapping[str, Any]) -> jsonschema.Draft202012Validator:
    """Check a parameter schema and build its validator.

    Raises:
        jsonschema.SchemaError: If the schema itself is malformed. Happens
            while the catalog is built, so a bad schema fails at startup.
    """
    jsonschema.Draft202012Validator.check_schema(schema)
    return jsonschema.Draft202012Validator(schema)


def _field_path(error: jsonschema.ValidationError) -> str:
    return ".".join(str(p) for p in error.absolute_path) or "arguments"


def _describe(error: jsonschema.ValidationError) -> list[str]:
    """Turn one jsonschema error into human-readable violations."""
    path = _field_path(error)
    if error.validator == "required":
        present = error.instance if isinstance(error.instance, dict) else {}
        prefix = "" if path == "arguments" else f"{path}."
        return [
            f"{prefix}{name} is required"
            for name in error.validator_value
            if name not in present
        ]
    if error.validator == "type":
        expected = error.validator_value
        if isinstance(expected, list):
            expected = " or ".join(expected)
        return [f"{path} must be of type {expected}"]
    if error.validator == "enum":
        valid = ", ".join(str(v) for v in error.validator_value)
        return [f"Unknown {path}: {error.instance}. Valid: {valid}"]
    return [f"{path}: {error.message}"]


def _routed(descriptor: ToolDescriptor, error: jsonschema.ValidationError) -> bool:
    # An out-of-range action is answered by the router with an envelope.
    return (
        error.validator == "enum"
        and descriptor.discriminant is not None
        and list(error.absolute_path) == [descriptor.discriminant]
    )


def check_arguments(descriptor: ToolDescriptor, raw_args: Any) -> list[str]:
    """Return every schema violation in `raw_args` (empty when valid)."""
    if raw_args is None:
        raw_args = {}
    if not isinstance(raw_args, dict):
        return ["arguments must be an object"]

    violations: list[str] = []
    errors = sorted(
        descriptor.validator.iter_errors(raw_args),
        key=lambda e: [str(p) for p in e.path],
    )
    for error in errors:
        if _routed(descriptor, error):
            continue
        for violation in _describe(error):
            if violation not in violations:
                violations.append(violation)
    return violations


def validate(descriptor: ToolDescriptor, raw_args: Any) -> ToolArgs:
    """Validate raw invocation arguments and build the typed arguments.

    Args:
        descriptor: The catalog entry of the invoked tool.
        raw_args: The argument object as received (None means no arguments).

    Returns:
        The tool's typed argument model, built after the tool's
        argument map renamed its fields to their canonical names.

    Raises:
        ValidationError: With the list of violations, if any.
    """
    violations = check_arguments(descriptor, raw_args)
    if violations:
        raise ValidationError(descriptor.name, violations)

    args = dict(raw_args or {})
    for source, target in descriptor.argument_map.items():
        if source in args:
            args[target] = args.pop(source)

    try:
        return descriptor.parse(args)
    except pydantic.ValidationError as exc:
        raise ValidationError(
            descriptor.name,
            [
                f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
                for err in exc.errors()
            ],
        ) from exc
