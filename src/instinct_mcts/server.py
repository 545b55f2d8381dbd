#!/usr/bin/env python3
"""
Instinct MCTS MCP Server
========================

Serves the Instinct MCTS tools over stdio.
"""
import asyncio
import logging
import sys

from mcp.server.fastmcp import FastMCP

from .tools import register_instinct_tools

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Create server
mcp = FastMCP("instinct-mcts")
register_instinct_tools(mcp)


async def main():
    """Main entry point."""
    try:
        logger.info("Starting Instinct MCTS MCP Server...")
        await mcp.run_stdio_async()
    except KeyboardInterrupt:
        logger.info("Server interrupted by user, shutting down...")
    except Exception as e:
        logger.error(f"Server error: {e}")
        sys.exit(1)


def cli_main() -> None:
    """
    Synchronous entry point for the CLI script.

    This function is called by the console script entry point in pyproject.toml
    and runs the async main() function.
    """
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n\nServer shutdown initiated by user")


if __name__ == "__main__":
    cli_main()
