"""Tool definitions and handlers for the beck-online provider.

All tools are prefixed with ``beck:``. Handlers encode the origin's URL
scheme and how its responses are interpreted; fetching goes through
:class:`BeckBrowser`, parsing through :class:`BeckConverter`.
"""

from __future__ import annotations

import json
from typing import Any, Awaitable, Callable
from urllib.parse import quote

import mcp.types as types

from german_legal_mcp.core.browser import BeckBrowser
from german_legal_mcp.core.exceptions import (
    AccessDeniedError,
    EmptyContentError,
    MalformedResponseError,
    UnresolvedReferenceError,
)
from german_legal_mcp.models.documents import CitationResolution, SearchHit
from german_legal_mcp.pipeline.converter import BeckConverter, vpath_from_url
from german_legal_mcp.providers.base import error_result, json_result, text_result
from german_legal_mcp.utils.logger import get_logger

logger = get_logger(__name__)


CATEGORY_FILTERS = {
    "Gesetz": "spubtyp0:ges",
    "Rechtsprechung": "spubtyp0:ent",
    "Kommentar": "spubtyp0:komm",
    "Aufsatz": "spubtyp0:aufs",
    "Handbuch": "spubtyp0:hdb",
    "Formular": "spubtyp0:form",
}

DIRECT_HIT_MARKER = "/Dokument?"
DIRECT_HIT_TITLE = "Direct Hit (Redirected)"


BECK_TOOLS: list[types.Tool] = [
    types.Tool(
        name="beck:search",
        description="Search the Beck Online legal database for laws, cases, and commentaries.",
        inputSchema={
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Search terms (e.g., 'Urheberrecht', 'BGB § 123')",
                },
                "page": {"type": "number", "default": 1, "description": "Page number"},
                "only_available": {
                    "type": "boolean",
                    "default": False,
                    "description": "Only include results from your active modules/subscriptions",
                },
                "category": {
                    "type": "string",
                    "enum": list(CATEGORY_FILTERS),
                    "description": "Filter by document type",
                },
            },
            "required": ["query"],
        },
    ),
    types.Tool(
        name="beck:get_document",
        description="Retrieve the full content of a document from Beck Online.",
        inputSchema={
            "type": "object",
            "properties": {
                "vpath": {
                    "type": "string",
                    "description": "Unique document identifier path (e.g. bibdata/ges/...) or a full Beck Online URL",
                },
                "format": {
                    "type": "string",
                    "enum": ["markdown", "html"],
                    "default": "markdown",
                    "description": "Output format",
                },
            },
            "required": ["vpath"],
        },
    ),
    types.Tool(
        name="beck:get_legislation",
        description="Directly retrieve a specific law/norm from Beck Online (e.g. BGB 823).",
        inputSchema={
            "type": "object",
            "properties": {
                "law_abbreviation": {
                    "type": "string",
                    "description": "Law abbreviation (e.g. 'BGB', 'UrhG')",
                },
                "paragraph": {"type": "string", "description": "Paragraph number (e.g. '15')"},
            },
            "required": ["law_abbreviation"],
        },
    ),
    types.Tool(
        name="beck:resolve_citation",
        description="Transform a natural language citation into a canonical Beck Online vpath and title.",
        inputSchema={
            "type": "object",
            "properties": {
                "citation": {
                    "type": "string",
                    "description": "The citation string (e.g. 'NJW 2024, 123', '§ 15 UrhG')",
                },
            },
            "required": ["citation"],
        },
    ),
    types.Tool(
        name="beck:get_context",
        description="Get breadcrumbs and navigation links for a Beck Online document.",
        inputSchema={
            "type": "object",
            "properties": {
                "vpath": {"type": "string", "description": "Unique document identifier path"},
            },
            "required": ["vpath"],
        },
    ),
    types.Tool(
        name="beck:get_suggestions",
        description="Get autocomplete suggestions for a legal term from Beck Online.",
        inputSchema={
            "type": "object",
            "properties": {
                "term": {"type": "string", "description": "Partial term to complete"},
            },
            "required": ["term"],
        },
    ),
    types.Tool(
        name="beck:get_referenced_documents",
        description="Get list of documents cited in the given Beck Online document.",
        inputSchema={
            "type": "object",
            "properties": {
                "vpath": {"type": "string", "description": "Unique document identifier path"},
            },
            "required": ["vpath"],
        },
    ),
]


def encode_component(value: Any) -> str:
    """URL-encode like JavaScript's encodeURIComponent"""
    return quote(str(value), safe="-_.!~*'()")


def search_url(query: str, page: int = 1, category: str | None = None, only_available: bool = False) -> str:
    url = f"/Search?pagenr={page}&words={encode_component(query)}"
    if category and category in CATEGORY_FILTERS:
        url += f"&Addfilter={encode_component(CATEGORY_FILTERS[category])}"
    if only_available:
        url += "&MEINBECKONLINE=True"
    return url


def print_url(vpath: str) -> str:
    return (
        f"/Print/CurrentDoc?vpath={encode_component(vpath)}"
        "&printdialogmode=CurrentDoc&options=WithFootNoteInText&options=WithLinks"
    )


def document_url(vpath: str) -> str:
    return f"/Dokument?vpath={encode_component(vpath)}"


def legislation_lookup_url(law_abbreviation: str, paragraph: str | None) -> str:
    return (
        f"/Bcid?typ=reference&y=100&g={encode_component(law_abbreviation)}"
        f"&p={encode_component(paragraph or '')}"
    )


def suggest_url(term: str) -> str:
    return f"/Suggest/?typ=std&term={encode_component(term)}"


def _required(args: dict[str, Any], key: str) -> str:
    value = str(args.get(key) or "").strip()
    if not value:
        raise ValueError(f"Missing required argument: {key}")
    return value


def _direct_hit_vpath(final_url: str) -> str | None:
    if DIRECT_HIT_MARKER not in final_url:
        return None
    return vpath_from_url(final_url)


async def _fetch_markdown(
    vpath: str,
    label: str,
    empty_message: str,
    browser: BeckBrowser,
    converter: BeckConverter,
) -> types.CallToolResult:
    page = await browser.fetch_page(print_url(vpath))
    if converter.is_access_denied(page.raw_content):
        raise AccessDeniedError(label)

    document = converter.to_document(page.raw_content)
    if document.is_empty:
        raise EmptyContentError(label, empty_message)
    return text_result(document.to_markdown())


async def handle_search(args: dict[str, Any], browser: BeckBrowser, converter: BeckConverter):
    query = _required(args, "query")
    page = int(args.get("page") or 1)

    url = search_url(
        query,
        page=page,
        category=args.get("category"),
        only_available=bool(args.get("only_available", False)),
    )
    result = await browser.fetch_page(url)

    # The origin redirects exact citation matches straight to the document
    vpath = _direct_hit_vpath(result.final_url)
    if vpath:
        logger.info(f"Search '{query}' redirected to {vpath}")
        hit = SearchHit(title=DIRECT_HIT_TITLE, type="Unknown", vpath=vpath, link=result.final_url)
        return json_result([hit])

    hits = converter.parse_search_results(result.raw_content)
    logger.info(f"Search '{query}' page {page}: {len(hits)} hits")
    return json_result(hits)


async def handle_get_document(args: dict[str, Any], browser: BeckBrowser, converter: BeckConverter):
    vpath = _required(args, "vpath")
    output_format = args.get("format") or "markdown"

    if vpath.startswith("http"):
        resolved = await browser.resolve_url(vpath)
        vpath = vpath_from_url(resolved) or vpath

    if output_format == "html":
        page = await browser.fetch_page(print_url(vpath))
        if converter.is_access_denied(page.raw_content):
            raise AccessDeniedError(f"vpath: {vpath}")
        return text_result(page.raw_content)

    return await _fetch_markdown(
        vpath,
        label=f"vpath: {vpath}",
        empty_message=f"Document content empty or access denied (vpath: {vpath}).",
        browser=browser,
        converter=converter,
    )


async def handle_get_legislation(args: dict[str, Any], browser: BeckBrowser, converter: BeckConverter):
    law_abbreviation = _required(args, "law_abbreviation")
    paragraph = str(args.get("paragraph") or "").strip() or None
    label = f"{law_abbreviation} {paragraph or ''}".strip()

    final_url = await browser.resolve_url(legislation_lookup_url(law_abbreviation, paragraph))
    vpath = vpath_from_url(final_url)
    if not vpath:
        raise UnresolvedReferenceError("Could not resolve legislation.")

    return await _fetch_markdown(
        vpath,
        label=label,
        empty_message=f"Empty content for {label}.",
        browser=browser,
        converter=converter,
    )


async def handle_resolve_citation(args: dict[str, Any], browser: BeckBrowser, converter: BeckConverter):
    citation = _required(args, "citation")
    final_url = await browser.resolve_url(f"/Search?words={encode_component(citation)}")

    vpath = _direct_hit_vpath(final_url)
    if not vpath:
        raise UnresolvedReferenceError(
            f'Could not resolve citation "{citation}" to a single document. '
            "It might lead to a hitlist or be invalid."
        )
    return json_result(CitationResolution(citation=citation, vpath=vpath, canonical_url=final_url))


async def handle_get_context(args: dict[str, Any], browser: BeckBrowser, converter: BeckConverter):
    vpath = _required(args, "vpath")
    page = await browser.fetch_page(document_url(vpath))
    return json_result(converter.extract_context(page.raw_content))


async def handle_get_suggestions(args: dict[str, Any], browser: BeckBrowser, converter: BeckConverter):
    term = _required(args, "term")
    page = await browser.fetch_page(suggest_url(term))
    raw_json = converter.extract_body_text(page.raw_content)

    try:
        data = json.loads(raw_json)
    except json.JSONDecodeError as e:
        logger.error(f"Suggestion payload for '{term}' is not JSON: {e}")
        raise MalformedResponseError("Failed to parse suggestions JSON.") from e

    values = data.get("values") if isinstance(data, dict) else None
    if not isinstance(values, list):
        logger.error(f"Suggestion payload for '{term}' has no values list")
        raise MalformedResponseError("Failed to parse suggestions JSON.")

    suggestions = [v.get("label") for v in values if isinstance(v, dict)]
    return json_result(suggestions)


async def handle_get_referenced_documents(args: dict[str, Any], browser: BeckBrowser, converter: BeckConverter):
    vpath = _required(args, "vpath")
    page = await browser.fetch_page(print_url(vpath))
    return json_result(converter.extract_references(page.raw_content))


Handler = Callable[[dict[str, Any], BeckBrowser, BeckConverter], Awaitable[types.CallToolResult]]

HANDLERS: dict[str, Handler] = {
    "beck:search": handle_search,
    "beck:get_document": handle_get_document,
    "beck:get_legislation": handle_get_legislation,
    "beck:resolve_citation": handle_resolve_citation,
    "beck:get_context": handle_get_context,
    "beck:get_suggestions": handle_get_suggestions,
    "beck:get_referenced_documents": handle_get_referenced_documents,
}


async def handle_beck_tool_call(
    tool_name: str,
    args: dict[str, Any],
    browser: BeckBrowser,
    converter: BeckConverter,
) -> types.CallToolResult:
    """Route a beck:* call; every failure becomes an error result"""
    handler = HANDLERS.get(tool_name)
    if handler is None:
        return error_result(f"Unknown Beck tool: {tool_name}")

    try:
        return await handler(args or {}, browser, converter)
    except (AccessDeniedError, EmptyContentError) as e:
        logger.warning(f"{tool_name}: {e}")
        return error_result(f"ERROR: {e}")
    except (UnresolvedReferenceError, MalformedResponseError) as e:
        logger.warning(f"{tool_name}: {e}")
        return error_result(str(e))
    except Exception as e:
        logger.error(f"{tool_name} failed: {e}")
        return error_result(f"Error: {e}")
