import asyncio
import json

import pytest
from mcp.server.fastmcp.exceptions import ToolError

from leptos_mcp.models import AppConfig
from leptos_mcp.server import build_server


def _texts(result):
    # newer SDKs pair the content list with structured output
    content = result[0] if isinstance(result, tuple) else result
    return [item.text for item in content]


def test_server_name_from_config():
    server = build_server(AppConfig(server_name="test-server"))

    assert server.name == "test-server"


def test_tools_are_listed_with_schemas():
    tools = asyncio.run(build_server().list_tools())

    assert [tool.name for tool in tools] == ["list-sections", "get-documentation", "leptos-autofixer"]
    assert tools[0].description.startswith("List all available Leptos documentation sections")
    assert tools[1].inputSchema["required"] == ["section"]
    assert tools[2].inputSchema["required"] == ["code"]


def test_call_autofixer():
    server = build_server()

    texts = _texts(asyncio.run(server.call_tool("leptos-autofixer", {"code": "let c = create_rw_signal(0);"})))

    assert "LEP007" in texts[0]
    assert json.loads(texts[1])["findings"][0]["rule_id"] == "LEP007"


def test_call_documentation_tools():
    server = build_server()

    sections = _texts(asyncio.run(server.call_tool("list-sections", {})))
    forms = _texts(asyncio.run(server.call_tool("get-documentation", {"section": "forms"})))

    assert len(sections[0].splitlines()) == 11
    assert forms[0].startswith("# Forms")


def test_unknown_tool():
    with pytest.raises(ToolError, match="Unknown tool"):
        asyncio.run(build_server().call_tool("format-code", {}))
