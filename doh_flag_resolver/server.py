#!/usr/bin/env python3
"""
Main FastMCP server with plugin-style modular architecture
Imports tool modules to trigger registration with the shared mcp instance
"""

from fastmcp import FastMCP

from .config import ResolverConfig, configure_logging

# Create the main FastMCP instance
mcp = FastMCP("DoH Flag Resolver")

# Import tool modules to register their functions with the mcp instance
from . import bulk_tools, core_tools  # noqa: E402,F401


def main():
    """Main entry point for the DoH Flag Resolver server"""
    settings = ResolverConfig.from_env()
    configure_logging(settings.log_level.upper())
    mcp.run()


if __name__ == "__main__":
    main()
