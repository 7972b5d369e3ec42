"""MCP server exposing the knowledge store as tools."""

import asyncio
import json
import logging
import sys
import traceback

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from .backend import build_backend
from .config import Settings, load_settings
from .errors import KindexError
from .store import KnowledgeStore

logger = logging.getLogger("kindex")

server = Server("kindex")
_store: KnowledgeStore | None = None

_NODE_ID_SCHEMA = {"type": "string", "description": "Node ID as returned by add_node or list_nodes"}
_CONTENT_SCHEMA = {
    "type": "string",
    "minLength": 3,
    "description": "Note text or URL (at least 3 characters). Keywords are derived from it.",
}


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List available MCP tools."""
    return [
        Tool(
            name="add_node",
            description=(
                "Store a note or URL. Keywords (up to 10) are extracted from the content "
                "and indexed for search. Content starting with 'http' is stored as type 'url'."
            ),
            inputSchema={
                "type": "object",
                "properties": {"content": _CONTENT_SCHEMA},
                "required": ["content"],
            },
        ),
        Tool(
            name="edit_node",
            description=(
                "Replace the content of an existing node. Keywords are recomputed; "
                "id, type and creation time are kept."
            ),
            inputSchema={
                "type": "object",
                "properties": {"node_id": _NODE_ID_SCHEMA, "content": _CONTENT_SCHEMA},
                "required": ["node_id", "content"],
            },
        ),
        Tool(
            name="delete_node",
            description="Delete a node and remove it from the keyword index.",
            inputSchema={
                "type": "object",
                "properties": {"node_id": _NODE_ID_SCHEMA},
                "required": ["node_id"],
            },
        ),
        Tool(
            name="get_node",
            description="Fetch a single node by ID.",
            inputSchema={
                "type": "object",
                "properties": {"node_id": _NODE_ID_SCHEMA},
                "required": ["node_id"],
            },
        ),
        Tool(
            name="list_nodes",
            description="List stored nodes, newest first.",
            inputSchema={
                "type": "object",
                "properties": {
                    "limit": {"type": "integer", "minimum": 1, "description": "Max nodes to return"},
                },
            },
        ),
        Tool(
            name="search_nodes",
            description=(
                "Find nodes sharing at least one keyword with the query (words of 3+ characters). "
                "Results are ordered newest first; there is no relevance ranking."
            ),
            inputSchema={
                "type": "object",
                "properties": {"query": {"type": "string", "description": "Search words"}},
                "required": ["query"],
            },
        ),
        Tool(
            name="check_index",
            description="Report inconsistencies between node records, registry and keyword index.",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="repair_index",
            description="Rebuild registry and keyword index from node records.",
            inputSchema={"type": "object", "properties": {}},
        ),
    ]


def dispatch(store: KnowledgeStore, name: str, arguments: dict) -> dict | list:
    """Run one tool against the store and return a JSON-serializable result.

    Raises:
        KindexError: Store failures (validation, not found, storage)
        ValueError: Unknown tool name
    """
    if name == "add_node":
        return store.create(arguments["content"]).to_summary()

    elif name == "edit_node":
        return store.update(arguments["node_id"], arguments["content"]).to_summary()

    elif name == "delete_node":
        node = store.delete(arguments["node_id"])
        return {"deleted": node.id}

    elif name == "get_node":
        return store.get(arguments["node_id"]).to_summary()

    elif name == "list_nodes":
        nodes = store.list_nodes()
        limit = arguments.get("limit")
        if limit:
            nodes = nodes[:limit]
        return [n.to_summary() for n in nodes]

    elif name == "search_nodes":
        return [n.to_summary() for n in store.search(arguments["query"])]

    elif name == "check_index":
        errors = store.check()
        return {"consistent": not errors, "problems": errors}

    elif name == "repair_index":
        return store.repair().to_dict()

    raise ValueError(f"Unknown tool: {name}")


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    """Handle tool calls."""
    if _store is None:
        return [TextContent(type="text", text="Error: store not initialized")]
    try:
        result = dispatch(_store, name, arguments or {})
        return [TextContent(type="text", text=json.dumps(result, indent=2, default=str))]
    except (KindexError, ValueError, KeyError) as e:
        logger.warning(f"Tool {name} rejected: {e}")
        return [TextContent(type="text", text=f"Error: {e}")]
    except Exception as e:
        logger.error(f"Tool {name} failed: {e}")
        logger.error(traceback.format_exc())
        return [TextContent(type="text", text=f"Error: {e}")]


def _setup_logging(settings: Settings) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file))
    logging.basicConfig(
        level=settings.log_level or logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=handlers,
    )


def main():
    """Entry point for the MCP server."""
    global _store

    settings = load_settings()
    _setup_logging(settings)
    _store = KnowledgeStore(build_backend(settings))

    logger.info(f"kindex MCP server starting (backend={settings.backend}, url={settings.redacted_url()})")
    try:
        asyncio.run(_run_server())
    except Exception as e:
        logger.error(f"Server crashed: {e}")
        logger.error(traceback.format_exc())
        raise
    finally:
        _store.backend.close()


async def _run_server():
    """Run the MCP server."""
    async with stdio_server() as (read, write):
        await server.run(read, write, server.create_initialization_options())


if __name__ == "__main__":
    main()
