"""Onboarding tool (`startNew`): new projects, users and patients.

Dispatches on `type` instead of `action`. Uses Medplum's auth endpoints:
- POST /auth/newproject   {login, projectName}
- POST /auth/newuser      user registration document
- POST /auth/newpatient   patient registration document
"""

from __future__ import annotations

from typing import Any

from medplum_tools.envelope import ResultEnvelope
from medplum_tools.medplum_client import MedplumClient
from medplum_tools.models import ToolArgs
from medplum_tools.router import ActionRouter, Route


class StartNewArgs(ToolArgs):
    type: str
    login: str | None = None
    project_name: str | None = None
    user: dict[str, Any] | None = None
    patient: dict[str, Any] | None = None


async def new_project(client: MedplumClient, args: StartNewArgs) -> Any:
    """Create a project for a login obtained from a prior sign-in."""
    if not args.login or not args.project_name:
        return ResultEnvelope.failure("login and projectName are required")
    return await client.post(
        "auth/newproject", {"login": args.login, "projectName": args.project_name}
    )


async def new_user(client: MedplumClient, args: StartNewArgs) -> Any:
    """Register a new user."""
    if not args.user:
        return ResultEnvelope.failure("user object is required")
    return await client.post("auth/newuser", args.user)


async def new_patient(client: MedplumClient, args: StartNewArgs) -> Any:
    """Register a new patient in an existing project."""
    if not args.patient:
        return ResultEnvelope.failure("patient object is required")
    return await client.post("auth/newpatient", args.patient)


start_new = ActionRouter(
    {
        "project": Route(new_project, StartNewArgs),
        "user": Route(new_user, StartNewArgs),
        "patient": Route(new_patient, StartNewArgs),
    },
    discriminant="type",
    echo_as="type",
)

START_NEW = start_new.tool(
    "startNew",
    "Start a new Medplum project, register a new user, or register a new patient.",
    {
        "login": {"type": "string", "description": "Login ID from a prior sign-in (project)."},
        "projectName": {"type": "string", "description": "Name of the new project (project)."},
        "user": {
            "type": "object",
            "description": "Registration: firstName, lastName, email, password, ... (user).",
        },
        "patient": {
            "type": "object",
            "description": "Registration: login, projectId, ... (patient).",
        },
    },
    discriminant_description="What to start: project, user or patient.",
)

TOOLS = [START_NEW]
