#!/usr/bin/env python3
"""
DoH Flag Resolver MCP Server - Main entry point
Run with: python -m doh_flag_resolver
"""

from doh_flag_resolver.server import main

if __name__ == "__main__":
    main()
