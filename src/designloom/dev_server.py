# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Development server module for 'mcp dev' and 'fastmcp run'.

Exposes the FastMCP instance as the module-level global ``mcp``, which those
tools look up at import time.

Usage (from the repository root):
    mcp dev src/designloom/dev_server.py:mcp
    fastmcp run src/designloom/dev_server.py:mcp

The data directory comes from .designloom.yml in the working directory
(default ./design). For normal use run: python -m designloom
"""

from designloom.mcp_server import DesignLoomMCPServer

_server = DesignLoomMCPServer()
mcp = _server.mcp
