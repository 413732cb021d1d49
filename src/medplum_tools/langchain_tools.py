"""LangChain adapter: the catalog as a list of StructuredTools.

An agent runtime built on LangChain or LangGraph binds these tools to its
model. Each tool's argument schema is the catalog's JSON schema, and each
call goes through `Dispatcher.call_tool`, so validation, routing and the
result envelope are exactly what the HTTP surface provides. The tool
returns the response text (the envelope JSON, or the error payload).

Usage:
    tools = build_structured_tools(get_dispatcher())
    agent = create_react_agent(model=llm, tools=tools)
"""

from collections.abc import Callable, Coroutine
from typing import Any

from langchain_core.tools import StructuredTool

from medplum_tools.dispatcher import Dispatcher


def _tool_coroutine(
    dispatcher: Dispatcher, tool_name: str
) -> Callable[..., Coroutine[Any, Any, str]]:
    async def call(**arguments: Any) -> str:
        response = await dispatcher.call_tool(tool_name, arguments)
        return response["content"][0]["text"]

    call.__name__ = tool_name
    return call


def build_structured_tools(dispatcher: Dispatcher) -> list[StructuredTool]:
    """Wrap every catalog tool as a LangChain StructuredTool."""
    tools: list[StructuredTool] = []
    for entry in dispatcher.list_tools():
        tool = StructuredTool.from_function(
            coroutine=_tool_coroutine(dispatcher, entry["name"]),
            name=entry["name"],
            description=entry["description"],
            args_schema=entry["parameterSchema"],
        )
        tools.append(tool)
    return tools
