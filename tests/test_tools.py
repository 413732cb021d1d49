"""Tests for the individual Medplum tools.

Each test calls a tool through the dispatcher with a mock MedplumClient
(see conftest.py), so no real Medplum server is needed. We verify the
endpoints and bodies sent to Medplum, the envelope fields, and the
required-field messages returned before any remote call.
"""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import AsyncMock

import pytest

from medplum_tools.dispatcher import Dispatcher
from medplum_tools.errors import NotFoundError
from medplum_tools.tools.general import build_request_path


async def _call(dispatcher: Dispatcher, tool: str, arguments: dict[str, Any]) -> dict[str, Any]:
    response = await dispatcher.call_tool(tool, arguments)
    assert "isError" not in response, response
    return json.loads(response["content"][0]["text"])


# --- manageClinicalReport ---


@pytest.mark.asyncio
async def test_clinical_report_create_uses_data(dispatcher: Dispatcher, client: AsyncMock) -> None:
    client.create_resource.return_value = {"resourceType": "Procedure", "id": "pr1"}

    envelope = await _call(
        dispatcher,
        "manageClinicalReport",
        {"action": "create", "resourceType": "Procedure", "data": {"status": "completed"}},
    )

    client.create_resource.assert_awaited_once_with(
        {"resourceType": "Procedure", "status": "completed"}
    )
    assert envelope["resource"]["id"] == "pr1"


@pytest.mark.asyncio
async def test_clinical_report_create_requires_data(
    dispatcher: Dispatcher, remote_calls
) -> None:
    envelope = await _call(
        dispatcher,
        "manageClinicalReport",
        {"action": "create", "resourceType": "DiagnosticReport"},
    )

    assert envelope["error"] == "Data is required for create action"
    assert remote_calls() == []


@pytest.mark.asyncio
async def test_manage_resource_id_messages(dispatcher: Dispatcher, remote_calls) -> None:
    for action in ("read", "update", "delete", "patch"):
        envelope = await _call(
            dispatcher, "manageResource", {"action": action, "resourceType": "Patient"}
        )
        assert envelope["error"] == f"ID is required for {action} action"
    assert remote_calls() == []


@pytest.mark.asyncio
async def test_manage_resource_patch_requires_operations(dispatcher: Dispatcher) -> None:
    envelope = await _call(
        dispatcher, "manageResource", {"action": "patch", "resourceType": "Patient", "id": "p1"}
    )

    assert envelope["error"] == "Patch operations are required for patch action"


@pytest.mark.asyncio
async def test_empty_resource_is_still_forwarded(dispatcher: Dispatcher, client: AsyncMock) -> None:
    client.create_resource.return_value = {"resourceType": "Basic", "id": "b1"}

    envelope = await _call(
        dispatcher, "manageResource", {"action": "create", "resourceType": "Basic", "resource": {}}
    )

    client.create_resource.assert_awaited_once_with({"resourceType": "Basic"})
    assert envelope["success"] is True


@pytest.mark.asyncio
async def test_empty_patch_list_is_still_forwarded(dispatcher: Dispatcher, client: AsyncMock) -> None:
    client.patch_resource.return_value = {"resourceType": "Patient", "id": "p1"}

    envelope = await _call(
        dispatcher,
        "manageResource",
        {"action": "patch", "resourceType": "Patient", "id": "p1", "patch": []},
    )

    client.patch_resource.assert_awaited_once_with("Patient", "p1", [])
    assert envelope["success"] is True


@pytest.mark.asyncio
async def test_unprintable_store_fault_keeps_context(dispatcher: Dispatcher, client: AsyncMock) -> None:
    class Unprintable(Exception):
        def __str__(self) -> str:
            raise TypeError("cannot stringify")

    client.read_resource.side_effect = Unprintable()

    envelope = await _call(
        dispatcher, "manageResource", {"action": "read", "resourceType": "Patient", "id": "p1"}
    )

    assert envelope == {
        "success": False,
        "action": "read",
        "resourceType": "Patient",
        "error": "Unprintable",
    }


# --- manageAutomation ---


@pytest.mark.asyncio
async def test_deploy_bot_posts_code(dispatcher: Dispatcher, client: AsyncMock) -> None:
    client.post.return_value = {"resourceType": "OperationOutcome"}

    envelope = await _call(
        dispatcher,
        "manageAutomation",
        {"action": "deploy-bot", "botId": "b1", "botCode": "export async function handler() {}"},
    )

    client.post.assert_awaited_once_with(
        "fhir/R4/Bot/b1/$deploy",
        {"code": "export async function handler() {}", "filename": "index.js"},
    )
    assert envelope == {
        "success": True,
        "action": "deploy-bot",
        "data": {"resourceType": "OperationOutcome"},
    }


@pytest.mark.asyncio
async def test_execute_bot_requires_id(dispatcher: Dispatcher, remote_calls) -> None:
    envelope = await _call(dispatcher, "manageAutomation", {"action": "execute-bot"})

    assert envelope["error"] == "botId is required"
    assert remote_calls() == []


@pytest.mark.asyncio
async def test_create_subscription_builds_rest_hook(
    dispatcher: Dispatcher, client: AsyncMock
) -> None:
    client.create_resource.side_effect = lambda resource: {**resource, "id": "s1"}

    envelope = await _call(
        dispatcher,
        "manageAutomation",
        {
            "action": "create-subscription",
            "subscriptionCriteria": "Observation?code=1234-5",
            "subscriptionEndpoint": "https://hooks.example.org/obs",
        },
    )

    sent = client.create_resource.await_args.args[0]
    assert sent["status"] == "active"
    assert sent["criteria"] == "Observation?code=1234-5"
    assert sent["channel"] == {"type": "rest-hook", "endpoint": "https://hooks.example.org/obs"}
    assert sent["reason"]
    assert envelope["data"]["id"] == "s1"


@pytest.mark.asyncio
async def test_get_missing_subscription_is_null(dispatcher: Dispatcher, client: AsyncMock) -> None:
    client.read_resource.side_effect = NotFoundError(404, "Not found")

    envelope = await _call(
        dispatcher, "manageAutomation", {"action": "get-subscription", "subscriptionId": "s9"}
    )

    assert envelope == {"success": True, "action": "get-subscription", "data": None}


@pytest.mark.asyncio
async def test_update_subscription_keeps_channel(dispatcher: Dispatcher, client: AsyncMock) -> None:
    client.read_resource.return_value = {
        "resourceType": "Subscription",
        "id": "s1",
        "status": "active",
        "channel": {"type": "rest-hook", "endpoint": "https://old", "payload": "application/fhir+json"},
    }
    client.update_resource.side_effect = lambda resource: resource

    await _call(
        dispatcher,
        "manageAutomation",
        {
            "action": "update-subscription",
            "subscriptionId": "s1",
            "subscriptionStatus": "off",
            "subscriptionEndpoint": "https://new",
        },
    )

    sent = client.update_resource.await_args.args[0]
    assert sent["status"] == "off"
    assert sent["channel"] == {
        "type": "rest-hook",
        "endpoint": "https://new",
        "payload": "application/fhir+json",
    }


@pytest.mark.asyncio
async def test_reload_agent(dispatcher: Dispatcher, client: AsyncMock) -> None:
    client.post.return_value = {"resourceType": "OperationOutcome"}

    await _call(dispatcher, "manageAutomation", {"action": "reload-agent", "agentId": "a1"})

    client.post.assert_awaited_once_with("fhir/R4/Agent/a1/$reload-config", {})


# --- patientData ---


@pytest.mark.asyncio
async def test_patient_everything(dispatcher: Dispatcher, client: AsyncMock) -> None:
    client.get.return_value = {"resourceType": "Bundle", "entry": []}

    envelope = await _call(dispatcher, "patientData", {"action": "everything", "patientId": "p1"})

    client.get.assert_awaited_once_with("fhir/R4/Patient/p1/$everything")
    assert envelope["patientId"] == "p1"
    assert envelope["data"]["resourceType"] == "Bundle"


@pytest.mark.asyncio
async def test_patient_summary_collects_sections(dispatcher: Dispatcher, client: AsyncMock) -> None:
    client.read_resource.return_value = {"resourceType": "Patient", "id": "p1"}
    client.search.return_value = {"resourceType": "Bundle", "entry": []}

    envelope = await _call(dispatcher, "patientData", {"action": "summary", "patientId": "p1"})

    assert set(envelope["data"]) == {"patient", "conditions", "medications", "recentObservations"}
    searched = [c.args for c in client.search.await_args_list]
    assert searched == [
        ("Condition", "patient=Patient/p1"),
        ("MedicationRequest", "patient=Patient/p1"),
        ("Observation", "patient=Patient/p1&_count=10&_sort=-date"),
    ]


# --- manageProject ---


@pytest.mark.asyncio
async def test_switch_project(dispatcher: Dispatcher, client: AsyncMock) -> None:
    envelope = await _call(dispatcher, "manageProject", {"action": "switch", "projectId": "proj-2"})

    client.switch_project.assert_awaited_once_with("proj-2")
    assert envelope == {"success": True, "action": "switch", "data": {"projectId": "proj-2"}}


@pytest.mark.asyncio
async def test_switch_project_requires_id(dispatcher: Dispatcher) -> None:
    envelope = await _call(dispatcher, "manageProject", {"action": "switch"})

    assert envelope["error"] == "projectId is required for switch action"


@pytest.mark.asyncio
async def test_invite_user_defaults(dispatcher: Dispatcher, client: AsyncMock) -> None:
    client.post.return_value = {"resourceType": "ProjectMembership"}

    await _call(
        dispatcher,
        "manageProject",
        {"action": "invite", "projectId": "proj-1", "email": "dr@example.org"},
    )

    client.post.assert_awaited_once_with(
        "admin/projects/proj-1/invite",
        {
            "resourceType": "Practitioner",
            "firstName": "",
            "lastName": "",
            "email": "dr@example.org",
            "sendEmail": True,
            "admin": False,
        },
    )


@pytest.mark.asyncio
async def test_add_secret_replaces_existing(dispatcher: Dispatcher, client: AsyncMock) -> None:
    client.read_resource.return_value = {
        "resourceType": "Project",
        "id": "proj-1",
        "secret": [{"name": "API_KEY", "valueString": "old"}, {"name": "OTHER", "valueString": "x"}],
    }
    client.update_resource.side_effect = lambda resource: resource

    await _call(
        dispatcher,
        "manageProject",
        {"action": "add-secret", "projectId": "proj-1", "secretName": "API_KEY", "secretValue": "new"},
    )

    sent = client.update_resource.await_args.args[0]
    assert sent["secret"] == [
        {"name": "OTHER", "valueString": "x"},
        {"name": "API_KEY", "valueString": "new"},
    ]


# --- manageMedia ---


@pytest.mark.asyncio
async def test_create_attachment_is_local(dispatcher: Dispatcher, remote_calls) -> None:
    envelope = await _call(
        dispatcher,
        "manageMedia",
        {
            "action": "create-attachment",
            "contentType": "application/json",
            "data": {"a": 1},
            "filename": "a.json",
        },
    )

    assert envelope["data"] == {
        "contentType": "application/json",
        "data": '{"a": 1}',
        "title": "a.json",
    }
    assert remote_calls() == []


@pytest.mark.asyncio
async def test_upload_creates_binary(dispatcher: Dispatcher, client: AsyncMock) -> None:
    client.create_resource.return_value = {"resourceType": "Binary", "id": "bin1"}

    await _call(
        dispatcher, "manageMedia", {"action": "upload", "contentType": "text/plain", "data": "aGk="}
    )

    client.create_resource.assert_awaited_once_with(
        {"resourceType": "Binary", "contentType": "text/plain", "data": "aGk="}
    )


@pytest.mark.asyncio
async def test_create_media_requires_content(dispatcher: Dispatcher) -> None:
    envelope = await _call(
        dispatcher, "manageMedia", {"action": "create-media", "contentType": "image/png"}
    )

    assert envelope["error"] == "content and contentType are required"


# --- startNew ---


@pytest.mark.asyncio
async def test_start_new_project(dispatcher: Dispatcher, client: AsyncMock) -> None:
    client.post.return_value = {"login": "l1", "code": "c1"}

    envelope = await _call(
        dispatcher, "startNew", {"type": "project", "login": "l1", "projectName": "Clinic"}
    )

    client.post.assert_awaited_once_with("auth/newproject", {"login": "l1", "projectName": "Clinic"})
    assert envelope["type"] == "project"
    assert "action" not in envelope


@pytest.mark.asyncio
async def test_start_new_patient_requires_patient(dispatcher: Dispatcher) -> None:
    envelope = await _call(dispatcher, "startNew", {"type": "patient"})

    assert envelope == {"success": False, "type": "patient", "error": "patient object is required"}


# --- manageHistory ---


@pytest.mark.asyncio
async def test_read_version(dispatcher: Dispatcher, client: AsyncMock) -> None:
    client.read_version.return_value = {"resourceType": "Patient", "id": "p1"}

    envelope = await _call(
        dispatcher,
        "manageHistory",
        {"action": "read-version", "resourceType": "Patient", "id": "p1", "versionId": "v2"},
    )

    client.read_version.assert_awaited_once_with("Patient", "p1", "v2")
    assert envelope["resourceType"] == "Patient"
    assert envelope["id"] == "p1"


@pytest.mark.asyncio
async def test_read_version_requires_version(dispatcher: Dispatcher) -> None:
    envelope = await _call(
        dispatcher, "manageHistory", {"action": "read-version", "resourceType": "Patient", "id": "p1"}
    )

    assert envelope["error"] == "versionId is required for read-version"


# --- terminology / executeFhirOperation ---


@pytest.mark.asyncio
async def test_subsumes(dispatcher: Dispatcher, client: AsyncMock) -> None:
    client.get.return_value = {"resourceType": "Parameters"}

    await _call(
        dispatcher,
        "terminology",
        {"action": "subsumes", "system": "http://snomed.info/sct", "codeA": "1", "codeB": "2"},
    )

    client.get.assert_awaited_once_with(
        "fhir/R4/CodeSystem/$subsumes",
        params={"system": "http://snomed.info/sct", "codeA": "1", "codeB": "2"},
    )


@pytest.mark.asyncio
async def test_subsumes_requires_codes(dispatcher: Dispatcher) -> None:
    envelope = await _call(dispatcher, "terminology", {"action": "subsumes", "system": "s"})

    assert envelope["error"] == "system, codeA, and codeB are required"


@pytest.mark.asyncio
async def test_validate_resource_operation(dispatcher: Dispatcher, client: AsyncMock) -> None:
    client.post.return_value = {"resourceType": "OperationOutcome", "issue": []}

    envelope = await _call(
        dispatcher,
        "executeFhirOperation",
        {"operation": "validate-resource", "parameters": {"resource": {"resourceType": "Patient"}}},
    )

    client.post.assert_awaited_once_with("fhir/R4/Patient/$validate", {"resourceType": "Patient"})
    assert envelope["action"] == "validate-resource"


@pytest.mark.asyncio
async def test_expand_valueset_requires_url(dispatcher: Dispatcher, remote_calls) -> None:
    envelope = await _call(
        dispatcher, "executeFhirOperation", {"operation": "expand-valueset", "parameters": {}}
    )

    assert envelope["error"] == "parameters must include url"
    assert remote_calls() == []


# --- bulkData / executeAdminTask / manageFhirCast ---


@pytest.mark.asyncio
async def test_bulk_export_params(dispatcher: Dispatcher, client: AsyncMock) -> None:
    client.get.return_value = None

    await _call(
        dispatcher,
        "bulkData",
        {"action": "export", "resourceTypes": ["Patient", "Observation"], "since": "2024-01-01"},
    )

    client.get.assert_awaited_once_with(
        "fhir/R4/$export", params={"_type": "Patient,Observation", "_since": "2024-01-01"}
    )


@pytest.mark.asyncio
async def test_bulk_import_requires_url(dispatcher: Dispatcher) -> None:
    envelope = await _call(dispatcher, "bulkData", {"action": "import"})

    assert envelope["error"] == "url is required for import"


@pytest.mark.asyncio
async def test_force_set_password(dispatcher: Dispatcher, client: AsyncMock) -> None:
    client.post.return_value = {"resourceType": "OperationOutcome"}

    envelope = await _call(
        dispatcher,
        "executeAdminTask",
        {"task": "force-set-password", "parameters": {"userId": "u1", "password": "s3cret!"}},
    )

    client.post.assert_awaited_once_with(
        "admin/super/setpassword", {"user": {"reference": "User/u1"}, "password": "s3cret!"}
    )
    assert envelope["action"] == "force-set-password"


@pytest.mark.asyncio
async def test_fhircast_subscribe_posts_form(dispatcher: Dispatcher, client: AsyncMock) -> None:
    client.post_form.return_value = {"hub.channel.endpoint": "wss://hub/ws/abc"}

    envelope = await _call(
        dispatcher,
        "manageFhirCast",
        {"action": "subscribe", "parameters": {"topic": "t1", "events": ["Patient-open"]}},
    )

    client.post_form.assert_awaited_once_with(
        "fhircast/STU3",
        {
            "hub.channel.type": "websocket",
            "hub.mode": "subscribe",
            "hub.topic": "t1",
            "hub.events": "Patient-open",
        },
    )
    assert envelope["data"]["endpoint"] == "wss://hub/ws/abc"


@pytest.mark.asyncio
async def test_fhircast_subscribe_rejects_string_events(
    dispatcher: Dispatcher, remote_calls
) -> None:
    envelope = await _call(
        dispatcher,
        "manageFhirCast",
        {"action": "subscribe", "parameters": {"topic": "t1", "events": "Patient-open"}},
    )

    assert envelope["error"] == "events must be a list of event names"
    assert remote_calls() == []


@pytest.mark.asyncio
async def test_fhircast_publish_wraps_event(dispatcher: Dispatcher, client: AsyncMock) -> None:
    client.post.return_value = {"success": True}

    await _call(
        dispatcher,
        "manageFhirCast",
        {"action": "publish", "parameters": {"topic": "t1", "event": "Patient-open", "context": []}},
    )

    path, notification = client.post.await_args.args
    assert path == "fhircast/STU3/t1"
    assert notification["event"]["hub.topic"] == "t1"
    assert notification["event"]["hub.event"] == "Patient-open"


# --- Single-operation tools ---


@pytest.mark.asyncio
async def test_who_am_i(dispatcher: Dispatcher, client: AsyncMock) -> None:
    me = {"profile": {"resourceType": "Practitioner", "id": "dr1"}, "project": {"id": "proj-1"}}
    client.get_profile.return_value = me

    envelope = await _call(dispatcher, "whoAmI", {})

    assert envelope == {"success": True, "data": me}


@pytest.mark.asyncio
async def test_graphql(dispatcher: Dispatcher, client: AsyncMock) -> None:
    client.post.return_value = {"data": {"PatientList": []}}

    await _call(dispatcher, "graphql", {"query": "{ PatientList { id } }"})

    client.post.assert_awaited_once_with("fhir/R4/$graphql", {"query": "{ PatientList { id } }"})


@pytest.mark.asyncio
async def test_post_bundle_rejects_non_bundle(dispatcher: Dispatcher, remote_calls) -> None:
    envelope = await _call(dispatcher, "postBundle", {"bundle": {"resourceType": "Patient"}})

    assert envelope["error"] == "bundle must be a Bundle resource"
    assert remote_calls() == []


@pytest.mark.asyncio
async def test_api_request_get(dispatcher: Dispatcher, client: AsyncMock) -> None:
    client.get.return_value = {"resourceType": "Bundle"}

    await _call(
        dispatcher,
        "apiRequest",
        {"method": "GET", "path": "/fhir/R4/Observation", "queryParams": {"code": ["a", "b"]}},
    )

    client.get.assert_awaited_once_with("fhir/R4/Observation?code=a&code=b")


def test_build_request_path() -> None:
    assert build_request_path("admin/projects", None) == "admin/projects"
    assert build_request_path("/x", {"flag": True, "n": 2}) == "x?flag=true&n=2"


@pytest.mark.asyncio
async def test_api_request_rejects_unknown_method(dispatcher: Dispatcher) -> None:
    response = await dispatcher.call_tool("apiRequest", {"method": "TRACE", "path": "x"})

    assert response["isError"] is True
    assert "Unknown method: TRACE" in response["content"][0]["text"]
