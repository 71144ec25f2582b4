"""MCP Server: expose the markdown docs via the Model Context Protocol.

Implements the MCP protocol (JSON-RPC 2.0 over stdio) directly, without an
SDK. Messages may arrive framed with a Content-Length header or as one JSON
object per line; each reply uses the framing of its request.

Tools:
  - get_docs: assemble the docs that apply to the user's attached files and
    to the docs the agent picked by description
  - list_docs: list the docs an agent can pick, with their descriptions

Protocol reference: https://modelcontextprotocol.io/specification
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from mdrules import __version__
from mdrules.config import ProjectConfig, find_project_root
from mdrules.context.engine import ContextAssembler
from mdrules.context.formatter import ContextFormatter
from mdrules.graph.builder import DocumentGraphBuilder, DocumentIndex
from mdrules.parser.core import FileSystem

logger = logging.getLogger("mdrules.mcp")

CONTENT_LENGTH = "content-length"
LINE_FRAMING = "line"
HEADER_FRAMING = "header"


class MethodNotFoundError(Exception):
    """The JSON-RPC method is not implemented."""


class MCPServer:
    """Model Context Protocol server for mdrules.

    The document index is built once, before serving or on the first
    request that needs it.
    """

    PROTOCOL_VERSION = "2024-11-05"
    SERVER_NAME = "markdown-rules"
    SERVER_VERSION = __version__

    def __init__(self, root: Path | None = None, config: ProjectConfig | None = None) -> None:
        self.root = (root or find_project_root() or Path.cwd()).resolve()
        self.config = config or ProjectConfig(name=self.root.name, root_path=str(self.root))
        self._builder = DocumentGraphBuilder(
            self.root, FileSystem.from_config(self.root, self.config.indexer)
        )
        self._index: DocumentIndex | None = None

    async def build_index(self) -> DocumentIndex:
        self._index = await self._builder.build()
        return self._index

    def _ensure_index(self) -> DocumentIndex:
        """Lazy-build the document index."""
        if self._index is None:
            asyncio.run(self.build_index())
        return self._index

    def _define_tools(self) -> list[dict]:
        """Define the MCP tools we expose."""
        descriptions = [
            doc.meta.description for doc in self._ensure_index().agent_attachable()
        ]
        description_schema: dict[str, Any] = {
            "type": "string",
            "description": "The description of the relevant doc",
        }
        if descriptions:
            description_schema["enum"] = descriptions

        return [
            {
                "name": "get_docs",
                "description": (
                    "Get relevant markdown docs in the codebase based on the user's query"
                ),
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "attachedFiles": {
                            "type": "array",
                            "items": {
                                "type": "string",
                                "description": "The path to the file to attach",
                            },
                            "description": "The list of files the user included in the user query",
                        },
                        "relevantDocsByDescription": {
                            "type": "array",
                            "items": description_schema,
                            "description": (
                                "The list of relevant docs based on the user's query by description"
                            ),
                        },
                    },
                    "required": ["attachedFiles", "relevantDocsByDescription"],
                },
            },
            {
                "name": "list_docs",
                "description": (
                    "List the markdown docs that can be requested by description, "
                    "with their file paths."
                ),
                "inputSchema": {
                    "type": "object",
                    "properties": {},
                },
            },
        ]

    # =========================================================================
    # Tool Implementations
    # =========================================================================

    def _handle_tool_call(self, name: str, arguments: dict) -> str:
        """Execute a tool and return the result."""
        if name == "get_docs":
            return self._tool_get_docs(arguments)
        elif name == "list_docs":
            return self._tool_list_docs(arguments)
        else:
            raise ValueError(f"Unknown tool: {name}")

    def _tool_get_docs(self, args: dict) -> str:
        index = self._ensure_index()
        attached = _string_list(args, "attachedFiles")
        selected = _string_list(args, "relevantDocsByDescription")

        known = {doc.meta.description for doc in index.agent_attachable()}
        unknown = [d for d in selected if d not in known]
        if unknown:
            raise ValueError(f"Unknown doc description(s): {', '.join(unknown)}")

        assembler = ContextAssembler(index, hoist=self.config.context.hoist)
        package = assembler.assemble_package(attached, selected)
        logger.info(
            f"get_docs: {len(attached)} attached, {len(selected)} selected "
            f"-> {len(package.items)} docs"
        )
        logger.debug(package.summary(str(self.root)))
        return ContextFormatter(self.root, index).format_context(package.items)

    def _tool_list_docs(self, _args: dict) -> str:
        docs = self._ensure_index().agent_attachable()
        if not docs:
            return "No docs can be requested by description."

        formatter = ContextFormatter(self.root, self._index)
        lines = ["Docs available by description:"]
        for doc in docs:
            lines.append(f"  {doc.meta.description} ({formatter.relative(doc.path)})")
        return "\n".join(lines)

    # =========================================================================
    # MCP Protocol Implementation (JSON-RPC 2.0 over stdio)
    # =========================================================================

    async def run_stdio(self) -> None:
        """Run the MCP server over stdio (the standard transport)."""
        await self.build_index()

        loop = asyncio.get_running_loop()
        reader = asyncio.StreamReader()
        protocol = asyncio.StreamReaderProtocol(reader)
        await loop.connect_read_pipe(lambda: protocol, sys.stdin.buffer)

        writer_transport, writer_protocol = await loop.connect_write_pipe(
            asyncio.streams.FlowControlMixin, sys.stdout.buffer
        )
        writer = asyncio.StreamWriter(writer_transport, writer_protocol, None, loop)

        tools = [tool["name"] for tool in self._define_tools()]
        logger.info(f"Starting server with {len(tools)} tools: {', '.join(tools)}")

        while True:
            try:
                received = await self._read_message(reader)
                if received is None:
                    break
                message, framing = received
                response = self._handle_message(message)
                if response is not None:
                    await self._write_message(writer, response, framing)
            except json.JSONDecodeError as e:
                logger.error(f"Malformed message: {e}")
                await self._write_message(
                    writer,
                    {
                        "jsonrpc": "2.0",
                        "id": None,
                        "error": {"code": -32700, "message": f"Parse error: {e}"},
                    },
                    LINE_FRAMING,
                )
            except Exception as e:
                logger.error(f"Error handling message: {e}")
                break

        logger.info("MCP server shutting down")

    async def _read_message(self, reader: asyncio.StreamReader) -> tuple[dict, str] | None:
        """Read one JSON-RPC message, with or without a Content-Length header."""
        content_length = 0
        while True:
            raw = await reader.readline()
            if not raw:
                return None
            line = raw.decode("utf-8").strip()
            if not line:
                if content_length:
                    break  # End of headers
                continue
            if line.startswith("{"):
                return json.loads(line), LINE_FRAMING
            name, _, value = line.partition(":")
            if name.strip().lower() == CONTENT_LENGTH:
                content_length = int(value.strip())

        body = await reader.readexactly(content_length)
        return json.loads(body.decode("utf-8")), HEADER_FRAMING

    async def _write_message(
        self, writer: asyncio.StreamWriter, message: dict, framing: str = HEADER_FRAMING
    ) -> None:
        """Write a JSON-RPC response in the given framing."""
        body = json.dumps(message).encode("utf-8")
        if framing == LINE_FRAMING:
            writer.write(body + b"\n")
        else:
            header = f"Content-Length: {len(body)}\r\n\r\n".encode()
            writer.write(header + body)
        await writer.drain()

    def _handle_message(self, message: dict) -> dict | None:
        """Route a JSON-RPC message to the appropriate handler."""
        method = message.get("method", "")
        msg_id = message.get("id")
        params = message.get("params") or {}

        # Notifications (no id) don't get responses
        if msg_id is None:
            self._handle_notification(method, params)
            return None

        try:
            result = self._dispatch(method, params)
            return {"jsonrpc": "2.0", "id": msg_id, "result": result}
        except MethodNotFoundError as e:
            return {
                "jsonrpc": "2.0",
                "id": msg_id,
                "error": {"code": -32601, "message": str(e)},
            }
        except Exception as e:
            logger.error(f"Error in {method}: {e}")
            return {
                "jsonrpc": "2.0",
                "id": msg_id,
                "error": {"code": -32603, "message": str(e)},
            }

    def _handle_notification(self, method: str, params: dict) -> None:
        """Handle a notification (no response needed)."""
        if method == "notifications/initialized":
            logger.info("Client initialized")
        elif method == "notifications/cancelled":
            logger.info(f"Request cancelled: {params.get('requestId')}")

    def _dispatch(self, method: str, params: dict) -> Any:
        """Dispatch a JSON-RPC method to its handler."""
        if method == "initialize":
            return self._rpc_initialize(params)
        elif method == "tools/list":
            return self._rpc_tools_list(params)
        elif method == "tools/call":
            return self._rpc_tools_call(params)
        elif method == "resources/list":
            return self._rpc_resources_list(params)
        elif method == "resources/read":
            return self._rpc_resources_read(params)
        elif method == "ping":
            return {}
        else:
            raise MethodNotFoundError(f"Unknown method: {method}")

    def _rpc_initialize(self, params: dict) -> dict:
        """Handle the initialize handshake."""
        return {
            "protocolVersion": self.PROTOCOL_VERSION,
            "capabilities": {
                "tools": {"listChanged": False},
                "resources": {"subscribe": False, "listChanged": False},
            },
            "serverInfo": {
                "name": self.SERVER_NAME,
                "version": self.SERVER_VERSION,
            },
        }

    def _rpc_tools_list(self, params: dict) -> dict:
        """List available tools."""
        return {"tools": self._define_tools()}

    def _rpc_tools_call(self, params: dict) -> dict:
        """Call a tool and return the result."""
        name = params.get("name", "")
        arguments = params.get("arguments") or {}

        try:
            result = self._handle_tool_call(name, arguments)
            return {
                "content": [{"type": "text", "text": result}],
                "isError": False,
            }
        except Exception as e:
            logger.error(f"Tool {name} failed: {e}")
            return {
                "content": [{"type": "text", "text": f"Error: {e}"}],
                "isError": True,
            }

    def _rpc_resources_list(self, params: dict) -> dict:
        """List available resources (indexed markdown docs)."""
        index = self._ensure_index()
        formatter = ContextFormatter(self.root, index)
        resources = []
        for node in index.nodes:
            if node.is_error or not node.is_markdown:
                continue
            rel = formatter.relative(node.path)
            if rel.startswith("../"):
                continue
            resource = {
                "uri": f"file://{rel}",
                "name": rel,
                "mimeType": "text/markdown",
            }
            if node.meta.description:
                resource["description"] = node.meta.description
            resources.append(resource)

        return {"resources": resources}

    def _rpc_resources_read(self, params: dict) -> dict:
        """Read a resource by URI."""
        uri = params.get("uri", "")
        # Strip file:// prefix
        fp = uri.removeprefix("file://")
        full_path = self.root / fp

        # Prevent path traversal outside project root
        try:
            full_path.resolve().relative_to(self.root)
        except ValueError:
            msg = f"Access denied: {fp} is outside the project root"
            return {"contents": [{"uri": uri, "text": msg}]}

        if not full_path.is_file():
            return {"contents": [{"uri": uri, "text": f"File not found: {fp}"}]}

        try:
            content = full_path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            return {"contents": [{"uri": uri, "text": f"Error reading {fp}: {e}"}]}
        return {"contents": [{"uri": uri, "mimeType": "text/markdown", "text": content}]}

    # =========================================================================
    # MCP Config Generators
    # =========================================================================

    @staticmethod
    def generate_claude_config(project_path: str | None = None) -> dict:
        """Generate MCP config for Claude Code (~/.claude/mcp_servers.json)."""
        return {
            "markdown-rules": {
                "command": "mdrules",
                "args": ["serve"],
                "cwd": project_path or ".",
                "env": {"PROJECT_ROOT": project_path or "."},
            }
        }

    @staticmethod
    def generate_cursor_config(project_path: str | None = None) -> dict:
        """Generate MCP config for Cursor (.cursor/mcp.json)."""
        return {
            "mcpServers": {
                "markdown-rules": {
                    "command": "mdrules",
                    "args": ["serve"],
                    "cwd": project_path or ".",
                    "env": {"PROJECT_ROOT": project_path or "."},
                }
            }
        }


def _string_list(args: dict, key: str) -> list[str]:
    value = args.get(key, [])
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"'{key}' must be a list of strings")
    return value
