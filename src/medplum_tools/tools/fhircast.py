"""FHIRcast tool (`manageFhirCast`).

Concept — FHIRcast:
    FHIRcast keeps several clinical applications looking at the same
    context (patient, study, ...). Applications subscribe to a "topic" on
    a hub and receive events over a websocket; any participant can publish
    a context change to the topic. Medplum hosts the hub at /fhircast/STU3.

Hub requests:
- publish:     POST /fhircast/STU3/{topic}   JSON event notification
- subscribe:   POST /fhircast/STU3           form: hub.mode=subscribe, ...
- unsubscribe: POST /fhircast/STU3           form: hub.mode=unsubscribe, ...
- get-context: GET  /fhircast/STU3/{topic}
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from medplum_tools.envelope import ResultEnvelope
from medplum_tools.medplum_client import MedplumClient
from medplum_tools.models import ToolArgs
from medplum_tools.router import ActionRouter, Route

FHIRCAST_HUB_PATH = "fhircast/STU3"


class FhirCastArgs(ToolArgs):
    action: str
    parameters: dict[str, Any]


def _hub_path(topic: str | None = None) -> str:
    return f"{FHIRCAST_HUB_PATH}/{topic}" if topic else FHIRCAST_HUB_PATH


def _subscription_form(mode: str, topic: str, events: list[str], endpoint: str = "") -> dict[str, str]:
    form = {
        "hub.channel.type": "websocket",
        "hub.mode": mode,
        "hub.topic": topic,
        "hub.events": ",".join(events),
    }
    if endpoint:
        form["hub.channel.endpoint"] = endpoint
    return form


async def publish(client: MedplumClient, args: FhirCastArgs) -> Any:
    """Publish a context-change event to a topic."""
    topic = args.parameters.get("topic")
    event = args.parameters.get("event")
    if not topic or not event:
        return ResultEnvelope.failure("topic and event are required")
    notification = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "id": str(uuid.uuid4()),
        "event": {
            "hub.topic": topic,
            "hub.event": event,
            "context": args.parameters.get("context") or [],
        },
    }
    return await client.post(_hub_path(topic), notification)


async def subscribe(client: MedplumClient, args: FhirCastArgs) -> Any:
    """Subscribe to events on a topic.

    Returns the subscription request (including the websocket endpoint the
    hub assigned), which `unsubscribe` takes back.
    """
    topic = args.parameters.get("topic")
    events = args.parameters.get("events") or []
    if not topic or not events:
        return ResultEnvelope.failure("topic and events are required")
    if not isinstance(events, list):
        return ResultEnvelope.failure("events must be a list of event names")
    form = _subscription_form("subscribe", topic, events)
    response = await client.post_form(_hub_path(), form) or {}
    return {
        "topic": topic,
        "events": events,
        "channelType": "websocket",
        "mode": "subscribe",
        "endpoint": response.get("hub.channel.endpoint", ""),
    }


async def unsubscribe(client: MedplumClient, args: FhirCastArgs) -> Any:
    """Cancel a subscription made by `subscribe`."""
    request = args.parameters.get("subscriptionRequest") or {}
    if not request.get("topic") or not request.get("endpoint"):
        return ResultEnvelope.failure("subscriptionRequest with topic and endpoint is required")
    if not isinstance(request.get("events") or [], list):
        return ResultEnvelope.failure("events must be a list of event names")
    form = _subscription_form(
        "unsubscribe", request["topic"], request.get("events") or [], request["endpoint"]
    )
    return await client.post_form(_hub_path(), form)


async def get_context(client: MedplumClient, args: FhirCastArgs) -> Any:
    """Read the current context of a topic."""
    topic = args.parameters.get("topic")
    if not topic:
        return ResultEnvelope.failure("topic is required")
    return await client.get(_hub_path(topic))


manage_fhircast = ActionRouter(
    {
        "publish": Route(publish, FhirCastArgs),
        "subscribe": Route(subscribe, FhirCastArgs),
        "unsubscribe": Route(unsubscribe, FhirCastArgs, key=None),
        "get-context": Route(get_context, FhirCastArgs),
    }
)

MANAGE_FHIRCAST = manage_fhircast.tool(
    "manageFhirCast",
    (
        "Publish FHIRcast context changes, subscribe or unsubscribe to a topic, "
        "or read a topic's current context. parameters by action: "
        "publish {topic, event, context}; subscribe {topic, events}; "
        "unsubscribe {subscriptionRequest}; get-context {topic}."
    ),
    {
        "parameters": {
            "type": "object",
            "description": "Inputs of the selected action.",
            "additionalProperties": True,
        }
    },
    required=["parameters"],
)

TOOLS = [MANAGE_FHIRCAST]
