import pytest

from german_legal_mcp.models.documents import Reference
from german_legal_mcp.providers import Provider, ProviderRegistry, text_result
from german_legal_mcp.providers.base import json_result, result_text
from german_legal_mcp.providers.beck import DISABLED_MESSAGE, BeckProvider
from german_legal_mcp.providers.ris import RisProvider
from tests.fakes import ORIGIN, StubBrowser, make_settings

pytestmark = pytest.mark.anyio


class EchoProvider(Provider):
    name = "echo"

    def __init__(self, fail_on_shutdown=False):
        self.initialized = 0
        self.shutdowns = 0
        self.fail_on_shutdown = fail_on_shutdown

    def get_tools(self):
        return []

    async def initialize(self):
        self.initialized += 1

    async def handle_tool_call(self, tool_name, arguments):
        if tool_name == "echo:boom":
            raise RuntimeError("kaputt")
        return text_result(f"{tool_name} {arguments}")

    async def shutdown(self):
        self.shutdowns += 1
        if self.fail_on_shutdown:
            raise RuntimeError("already gone")


def test_json_result_serializes_models():
    result = json_result([Reference(text="§ 249 BGB", vpath="bibdata/ges/bgb/cont/bgb.p249.htm")])
    assert result.isError is False
    assert '"text": "§ 249 BGB"' in result_text(result)


def test_prefix():
    assert BeckProvider(make_settings(), browser=StubBrowser()).prefix == "beck:"
    assert RisProvider().prefix == "ris:"


async def test_configured_beck_provider_lists_all_tools():
    provider = BeckProvider(make_settings(), browser=StubBrowser())
    names = [tool.name for tool in provider.get_tools()]

    assert names == [
        "beck:search",
        "beck:get_document",
        "beck:get_legislation",
        "beck:resolve_citation",
        "beck:get_context",
        "beck:get_suggestions",
        "beck:get_referenced_documents",
    ]


@pytest.mark.parametrize("overrides", [{"beck_username": ""}, {"beck_password": ""}])
async def test_unconfigured_beck_provider_is_disabled(overrides):
    browser = StubBrowser()
    provider = BeckProvider(make_settings(**overrides), browser=browser)

    assert provider.get_tools() == []

    result = await provider.handle_tool_call("beck:search", {"query": "BGB"})
    assert result.isError
    assert result_text(result) == DISABLED_MESSAGE
    assert browser.requested == []


async def test_beck_provider_delegates_to_handlers():
    browser = StubBrowser()
    provider = BeckProvider(make_settings(), browser=browser)

    result = await provider.handle_tool_call("beck:search", {"query": "UrhG"})

    assert not result.isError
    assert browser.requested == [f"{ORIGIN}/Search?pagenr=1&words=UrhG"]


async def test_ris_provider_has_no_tools():
    provider = RisProvider()
    assert provider.get_tools() == []

    result = await provider.handle_tool_call("ris:search", {})
    assert result.isError
    assert result_text(result) == "RIS provider not implemented: ris:search"


async def test_registry_routes_by_prefix():
    registry = ProviderRegistry()
    echo = EchoProvider()
    await registry.register(echo)
    await registry.register(RisProvider())

    assert echo.initialized == 1
    result = await registry.call_tool("echo:ping", {"n": 1})
    assert result_text(result) == "echo:ping {'n': 1}"

    result = await registry.call_tool("ris:search", None)
    assert result_text(result) == "RIS provider not implemented: ris:search"


@pytest.mark.parametrize("name", ["search", "nope:search", ":search", ""])
async def test_registry_unknown_tools(name):
    registry = ProviderRegistry()
    await registry.register(EchoProvider())

    result = await registry.call_tool(name, {})

    assert result.isError
    assert result_text(result) == f"Unknown tool: {name}"


async def test_registry_converts_provider_exceptions():
    registry = ProviderRegistry()
    await registry.register(EchoProvider())

    result = await registry.call_tool("echo:boom", {})

    assert result.isError
    assert result_text(result) == "Error: kaputt"


async def test_registry_lists_union_of_tools():
    registry = ProviderRegistry()
    await registry.register(BeckProvider(make_settings(), browser=StubBrowser()))
    await registry.register(RisProvider())

    assert len(registry.list_tools()) == 7
    assert [p.name for p in registry.providers] == ["beck", "ris"]


async def test_registry_shutdown_runs_once():
    registry = ProviderRegistry()
    failing = EchoProvider(fail_on_shutdown=True)
    failing.name = "broken"
    await registry.register(failing)
    echo = EchoProvider()
    await registry.register(echo)

    await registry.shutdown()
    await registry.shutdown()

    assert failing.shutdowns == 1
    assert echo.shutdowns == 1
