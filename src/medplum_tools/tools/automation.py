"""Automation tool: Bots, Subscriptions and Agents behind one `manageAutomation`.

Medplum Bots are server-side functions. Creating a Bot makes the resource;
deploying uploads its code; executing runs it with an input document.
Subscriptions push resource changes matching a search criteria to a
rest-hook endpoint. Agents are on-premise relays whose configuration can
be reloaded remotely.

Endpoints:
- POST /fhir/R4/Bot/{id}/$deploy            {code, filename}
- POST /fhir/R4/Bot/{id}/$execute           bot input
- POST /fhir/R4/Agent/{id}/$reload-config
- CRUD on /fhir/R4/Bot and /fhir/R4/Subscription
"""

from __future__ import annotations

from typing import Any, Literal

from medplum_tools.envelope import ResultEnvelope
from medplum_tools.medplum_client import MedplumClient, fhir_path
from medplum_tools.models import ToolArgs
from medplum_tools.router import ActionRouter, Route

DEFAULT_BOT_FILENAME = "index.js"
DEFAULT_SUBSCRIPTION_REASON = "Created by the Medplum tool server"


class AutomationArgs(ToolArgs):
    action: str


class DeployBotArgs(AutomationArgs):
    bot_id: str | None = None
    bot_code: str | None = None
    bot_filename: str | None = None


class ExecuteBotArgs(AutomationArgs):
    bot_id: str | None = None
    bot_input: dict[str, Any] | None = None


class CreateBotArgs(AutomationArgs):
    bot_name: str | None = None
    bot_description: str | None = None


class SubscriptionArgs(AutomationArgs):
    subscription_id: str | None = None
    subscription_criteria: str | None = None
    subscription_endpoint: str | None = None
    subscription_reason: str | None = None
    subscription_status: Literal["active", "off", "error"] | None = None


class ReloadAgentArgs(AutomationArgs):
    agent_id: str | None = None


def _required(field: str) -> ResultEnvelope:
    return ResultEnvelope.failure(f"{field} is required")


# --- Bots ---


async def deploy_bot(client: MedplumClient, args: DeployBotArgs) -> Any:
    """Upload compiled code to a Bot.

    Args:
        args: botCode (required), botId (required), botFilename.

    Returns:
        The OperationOutcome of the deployment.
    """
    if not args.bot_code:
        return _required("botCode")
    if not args.bot_id:
        return _required("botId")
    return await client.post(
        fhir_path("Bot", args.bot_id, "$deploy"),
        {"code": args.bot_code, "filename": args.bot_filename or DEFAULT_BOT_FILENAME},
    )


async def execute_bot(client: MedplumClient, args: ExecuteBotArgs) -> Any:
    """Run a deployed Bot with `botInput` as its input document."""
    if not args.bot_id:
        return _required("botId")
    return await client.post(fhir_path("Bot", args.bot_id, "$execute"), args.bot_input or {})


async def create_bot(client: MedplumClient, args: CreateBotArgs) -> Any:
    """Create a Bot resource. Its code is uploaded separately with deploy-bot."""
    if not args.bot_name:
        return _required("botName")
    bot = {"resourceType": "Bot", "name": args.bot_name}
    if args.bot_description:
        bot["description"] = args.bot_description
    return await client.create_resource(bot)


# --- Subscriptions ---


async def create_subscription(client: MedplumClient, args: SubscriptionArgs) -> Any:
    """Create an active rest-hook Subscription for a search criteria."""
    if not args.subscription_criteria:
        return _required("subscriptionCriteria")
    if not args.subscription_endpoint:
        return _required("subscriptionEndpoint")
    subscription = {
        "resourceType": "Subscription",
        "status": "active",
        "criteria": args.subscription_criteria,
        "reason": args.subscription_reason or DEFAULT_SUBSCRIPTION_REASON,
        "channel": {"type": "rest-hook", "endpoint": args.subscription_endpoint},
    }
    return await client.create_resource(subscription)


async def get_subscription(client: MedplumClient, args: SubscriptionArgs) -> Any:
    """Read a Subscription; a missing one reads as null."""
    if not args.subscription_id:
        return _required("subscriptionId")
    return await client.read_resource("Subscription", args.subscription_id)


async def update_subscription(client: MedplumClient, args: SubscriptionArgs) -> Any:
    """Change status, criteria or endpoint of an existing Subscription.

    The endpoint is only replaced when the stored Subscription already has
    a channel; the rest of the channel is kept.
    """
    if not args.subscription_id:
        return _required("subscriptionId")
    existing = await client.read_resource("Subscription", args.subscription_id)
    updated = dict(existing)
    if args.subscription_status:
        updated["status"] = args.subscription_status
    if args.subscription_criteria:
        updated["criteria"] = args.subscription_criteria
    if args.subscription_endpoint and existing.get("channel"):
        updated["channel"] = {**existing["channel"], "endpoint": args.subscription_endpoint}
    return await client.update_resource(updated)


async def delete_subscription(client: MedplumClient, args: SubscriptionArgs) -> Any:
    """Delete a Subscription."""
    if not args.subscription_id:
        return _required("subscriptionId")
    await client.delete_resource("Subscription", args.subscription_id)
    return None


# --- Agents ---


async def reload_agent(client: MedplumClient, args: ReloadAgentArgs) -> Any:
    """Ask an on-premise Agent to reload its configuration."""
    if not args.agent_id:
        return _required("agentId")
    return await client.post(fhir_path("Agent", args.agent_id, "$reload-config"), {})


manage_automation = ActionRouter(
    {
        "deploy-bot": Route(deploy_bot, DeployBotArgs),
        "execute-bot": Route(execute_bot, ExecuteBotArgs),
        "create-bot": Route(create_bot, CreateBotArgs),
        "create-subscription": Route(create_subscription, SubscriptionArgs),
        "get-subscription": Route(get_subscription, SubscriptionArgs, reads=True),
        "update-subscription": Route(update_subscription, SubscriptionArgs),
        "delete-subscription": Route(delete_subscription, SubscriptionArgs, key=None),
        "reload-agent": Route(reload_agent, ReloadAgentArgs),
    }
)

MANAGE_AUTOMATION = manage_automation.tool(
    "manageAutomation",
    (
        "Manage Medplum automation: create, deploy and execute Bots; create, read, "
        "update and delete rest-hook Subscriptions; reload an Agent's configuration."
    ),
    {
        "botId": {"type": "string", "description": "Bot ID (deploy-bot, execute-bot)."},
        "botCode": {"type": "string", "description": "Compiled bot source (deploy-bot)."},
        "botFilename": {
            "type": "string",
            "description": f"Bot file name (deploy-bot). Defaults to {DEFAULT_BOT_FILENAME}.",
        },
        "botInput": {"type": "object", "description": "Input passed to the bot (execute-bot)."},
        "botName": {"type": "string", "description": "Name of the new bot (create-bot)."},
        "botDescription": {"type": "string", "description": "Bot description (create-bot)."},
        "subscriptionId": {"type": "string", "description": "Subscription ID."},
        "subscriptionCriteria": {
            "type": "string",
            "description": "Search criteria, e.g. 'Observation?code=1234-5'.",
        },
        "subscriptionEndpoint": {
            "type": "string",
            "description": "rest-hook URL notified on matching changes.",
        },
        "subscriptionReason": {"type": "string", "description": "Why the subscription exists."},
        "subscriptionStatus": {
            "type": "string",
            "enum": ["active", "off", "error"],
            "description": "New status (update-subscription).",
        },
        "agentId": {"type": "string", "description": "Agent ID (reload-agent)."},
    },
)

TOOLS = [MANAGE_AUTOMATION]
