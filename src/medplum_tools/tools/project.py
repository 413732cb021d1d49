"""Project administration tool (`manageProject`).

A Medplum login can belong to several projects, each through a
ProjectMembership. This tool lists those memberships, selects the project
later calls should target, reads the project and the caller's profile,
invites users and stores project secrets (used by Bots).
"""

from __future__ import annotations

from typing import Any, Literal

from medplum_tools.envelope import ResultEnvelope
from medplum_tools.medplum_client import MedplumClient
from medplum_tools.models import ToolArgs
from medplum_tools.router import ActionRouter, Route


class ProjectArgs(ToolArgs):
    action: str
    project_id: str | None = None


class InviteArgs(ProjectArgs):
    email: str | None = None
    resource_type: Literal["Patient", "Practitioner", "RelatedPerson"] = "Practitioner"
    first_name: str = ""
    last_name: str = ""
    access_policy: dict[str, Any] | None = None
    send_email: bool = True
    admin: bool = False


class SecretArgs(ProjectArgs):
    secret_name: str | None = None
    secret_value: str | None = None


async def list_projects(client: MedplumClient, args: ProjectArgs) -> Any:
    """Return the caller's ProjectMemberships as a searchset Bundle."""
    return await client.search("ProjectMembership", "_count=100")


async def switch_project(client: MedplumClient, args: ProjectArgs) -> Any:
    """Make `projectId` the project later calls act on."""
    if not args.project_id:
        return ResultEnvelope.failure("projectId is required for switch action")
    await client.switch_project(args.project_id)
    return {"projectId": args.project_id}


async def get_project(client: MedplumClient, args: ProjectArgs) -> Any:
    """Read the active project."""
    return await client.get_project()


async def get_profile(client: MedplumClient, args: ProjectArgs) -> Any:
    """Return the profile resource (Practitioner, Patient, ...) of the login."""
    me = await client.get_profile() or {}
    return me.get("profile", me)


async def invite_user(client: MedplumClient, args: InviteArgs) -> Any:
    """Invite a user to a project.

    Args:
        args: projectId and email (required); resourceType picks the profile
            type and defaults to Practitioner.

    Returns:
        The new ProjectMembership.
    """
    if not args.project_id or not args.email:
        return ResultEnvelope.failure("projectId and email are required")
    body = {
        "resourceType": args.resource_type,
        "firstName": args.first_name,
        "lastName": args.last_name,
        "email": args.email,
        "sendEmail": args.send_email,
        "admin": args.admin,
    }
    if args.access_policy:
        body["accessPolicy"] = args.access_policy
    return await client.post(f"admin/projects/{args.project_id}/invite", body)


async def add_secret(client: MedplumClient, args: SecretArgs) -> Any:
    """Add a project secret, or replace the value of one with the same name."""
    if not args.project_id or not args.secret_name or not args.secret_value:
        return ResultEnvelope.failure("projectId, secretName, and secretValue are required")
    project = await client.read_resource("Project", args.project_id)
    entry = {"name": args.secret_name, "valueString": args.secret_value}
    secrets = [s for s in project.get("secret") or [] if s.get("name") != args.secret_name]
    secrets.append(entry)
    return await client.update_resource({**project, "secret": secrets})


manage_project = ActionRouter(
    {
        "list": Route(list_projects, ProjectArgs),
        "switch": Route(switch_project, ProjectArgs),
        "get": Route(get_project, ProjectArgs),
        "get-profile": Route(get_profile, ProjectArgs),
        "invite": Route(invite_user, InviteArgs),
        "add-secret": Route(add_secret, SecretArgs),
    }
)

MANAGE_PROJECT = manage_project.tool(
    "manageProject",
    (
        "Manage Medplum projects: list memberships, switch the active project, "
        "read the project or your profile, invite users, add project secrets."
    ),
    {
        "projectId": {"type": "string", "description": "Project ID (switch, invite, add-secret)."},
        "email": {"type": "string", "description": "Email of the invited user (invite)."},
        "resourceType": {
            "type": "string",
            "enum": ["Patient", "Practitioner", "RelatedPerson"],
            "description": "Profile type of the invited user. Defaults to Practitioner.",
        },
        "firstName": {"type": "string"},
        "lastName": {"type": "string"},
        "accessPolicy": {
            "type": "object",
            "description": "Reference to an AccessPolicy, e.g. {\"reference\": \"AccessPolicy/1\"}.",
        },
        "sendEmail": {"type": "boolean", "description": "Send an invite email. Defaults to true."},
        "admin": {"type": "boolean", "description": "Make the user a project admin."},
        "secretName": {"type": "string", "description": "Secret name (add-secret)."},
        "secretValue": {"type": "string", "description": "Secret value (add-secret)."},
    },
)

TOOLS = [MANAGE_PROJECT]
