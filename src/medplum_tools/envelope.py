"""Result envelope and the error normalizer that produces it.

Every tool call ends in exactly one ResultEnvelope. `run()` is the handler
boundary: it executes a handler and folds whatever happens (a value, an
envelope the handler built itself, or a fault) into an envelope. Nothing
is re-raised past it.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict

from medplum_tools.errors import NotFoundError, RemoteOperationError, ToolServerError

logger = logging.getLogger(__name__)


class ResultEnvelope(BaseModel):
    """Uniform `{success, data|resource|resources, error}` result.

    Only fields that were explicitly set are serialized, so an explicit
    `resource=None` (a read that found nothing) shows up as `null` while
    untouched fields are omitted.
    """

    model_config = ConfigDict(extra="forbid")

    success: bool
    action: str | None = None
    type: str | None = None
    resourceType: str | None = None
    id: str | None = None
    patientId: str | None = None
    resource: Any = None
    resources: list[Any] | None = None
    data: Any = None
    total: int | None = None
    error: str | None = None

    @classmethod
    def failure(cls, error: str, **fields: Any) -> ResultEnvelope:
        return cls(success=False, error=error, **fields)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_unset=True)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"), default=str)


def describe_fault(exc: BaseException) -> str:
    """Return the human-readable message for a caught fault."""
    if isinstance(exc, RemoteOperationError):
        return exc.diagnostic
    try:
        message = str(exc)
    except Exception:  # noqa: BLE001
        return type(exc).__name__
    return message or repr(exc)


def _merge(envelope: ResultEnvelope, context: Mapping[str, Any]) -> ResultEnvelope:
    # Fields the handler set itself win over the routing context.
    fields = {**context, **envelope.model_dump(exclude_unset=True)}
    return ResultEnvelope(**fields)


async def run(
    thunk: Callable[[], Awaitable[Any]],
    *,
    key: str | None = "data",
    context: Mapping[str, Any] | None = None,
    missing_as_null: bool = False,
) -> ResultEnvelope:
    """Execute `thunk` and normalize its outcome into a ResultEnvelope.

    Args:
        thunk: Zero-argument coroutine factory running the operation.
        key: Envelope field that receives a plain return value
            ("resource", "resources" or "data"); None discards it.
        context: Routing fields echoed into the envelope (action, resourceType, ...).
        missing_as_null: Treat NotFoundError as a successful empty result.
            Only read operations set this.

    Returns:
        The envelope. Faults become `success=False` envelopes.
    """
    context = dict(context or {})
    try:
        result = await thunk()
    except NotFoundError as exc:
        if missing_as_null:
            fields = {key: None} if key else {}
            return ResultEnvelope(success=True, **context, **fields)
        logger.info("Not found: %s", exc.diagnostic)
        return ResultEnvelope.failure(exc.diagnostic, **context)
    except RemoteOperationError as exc:
        logger.warning("Medplum error (HTTP %s): %s", exc.status_code, exc.diagnostic)
        return ResultEnvelope.failure(exc.diagnostic, **context)
    except ToolServerError as exc:
        logger.warning("%s: %s", type(exc).__name__, exc)
        return ResultEnvelope.failure(describe_fault(exc), **context)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unexpected error in tool handler")
        return ResultEnvelope.failure(describe_fault(exc), **context)

    if isinstance(result, ResultEnvelope):
        return _merge(result, context)
    fields = {key: result} if key else {}
    return ResultEnvelope(success=True, **context, **fields)
