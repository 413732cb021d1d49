"""Media and binary content tool (`manageMedia`).

- create-media:      store a Media resource wrapping an Attachment
- create-attachment: build an Attachment document locally (nothing is stored)
- upload:            store raw content as a Binary resource
"""

from __future__ import annotations

import json
from typing import Any

from medplum_tools.envelope import ResultEnvelope
from medplum_tools.medplum_client import MedplumClient
from medplum_tools.models import ToolArgs
from medplum_tools.router import ActionRouter, Route


class MediaArgs(ToolArgs):
    action: str
    content_type: str
    content: dict[str, Any] | None = None
    data: str | dict[str, Any] | None = None
    filename: str | None = None


def _as_text(data: str | dict[str, Any]) -> str:
    return data if isinstance(data, str) else json.dumps(data)


async def create_media(client: MedplumClient, args: MediaArgs) -> Any:
    """Store a completed Media resource around the given Attachment fields."""
    if not args.content or not args.content_type:
        return ResultEnvelope.failure("content and contentType are required")
    content = {"contentType": args.content_type, **args.content}
    if args.filename and "title" not in content:
        content["title"] = args.filename
    media = {"resourceType": "Media", "status": "completed", "content": content}
    return await client.create_resource(media)


async def create_attachment(client: MedplumClient, args: MediaArgs) -> Any:
    """Build an Attachment locally. Object data is serialized to JSON text."""
    if not args.data or not args.content_type:
        return ResultEnvelope.failure("data and contentType are required")
    attachment = {"contentType": args.content_type, "data": _as_text(args.data)}
    if args.filename:
        attachment["title"] = args.filename
    return attachment


async def upload(client: MedplumClient, args: MediaArgs) -> Any:
    """Store content as a Binary resource."""
    if not args.data or not args.content_type:
        return ResultEnvelope.failure("data and contentType are required")
    binary = {
        "resourceType": "Binary",
        "contentType": args.content_type,
        "data": _as_text(args.data),
    }
    return await client.create_resource(binary)


manage_media = ActionRouter(
    {
        "create-media": Route(create_media, MediaArgs),
        "create-attachment": Route(create_attachment, MediaArgs),
        "upload": Route(upload, MediaArgs),
    }
)

MANAGE_MEDIA = manage_media.tool(
    "manageMedia",
    "Create Media resources, build Attachments, or upload content as a Binary.",
    {
        "contentType": {"type": "string", "description": "MIME type, e.g. image/png."},
        "content": {
            "type": "object",
            "description": "Attachment fields of the Media (create-media).",
        },
        "data": {
            "anyOf": [{"type": "string"}, {"type": "object"}],
            "description": "Base64 data, or a JSON object (create-attachment, upload).",
        },
        "filename": {"type": "string", "description": "Title of the attachment."},
    },
    required=["contentType"],
)

TOOLS = [MANAGE_MEDIA]
