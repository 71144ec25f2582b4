"""MCP (Model Context Protocol) Server for mdrules.

Exposes the project's markdown docs to any MCP-compatible client:
  - Claude Code
  - Cursor
  - Any custom MCP client

Usage:
    mdrules serve                            # Start the MCP server
    mdrules serve --generate-config cursor   # Print client config
"""

from mdrules.mcp.server import MCPServer

__all__ = ["MCPServer"]
