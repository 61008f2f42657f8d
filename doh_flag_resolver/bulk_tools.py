"""
Bulk hostname resolution
Concurrent resolution of many hostnames through the shared rate-limited resolver
"""

import time

from .config import config
from .formatters import format_bulk_response, format_resolution_response
from .param_utils import ensure_int
from .resolvers import get_default_resolver
from .server import mcp


@mcp.tool()
async def resolve_hostnames(hostnames: list[str], max_workers: int = 10) -> dict:
    """
    Resolve many hostnames concurrently

    Cached hostnames return immediately; the rest share the per-provider
    rate limits, so a large uncached batch takes about one second per
    hostname with the default two providers.

    Args:
        hostnames: List of hostnames to resolve
        max_workers: Maximum concurrent resolutions (default: 10)

    Returns:
        Dictionary with per-hostname results and summary counts
    """
    if not hostnames:
        return format_bulk_response(hostnames=[], results=[], total_time=0.0)

    # Ensure max_workers is an integer (handles FastMCP type conversion issues)
    max_workers = config.validate_max_workers(
        ensure_int(max_workers) or config.default_max_workers
    )

    start_time = time.time()
    outcomes = await get_default_resolver().resolve_many(
        hostnames, max_concurrency=max_workers
    )
    results = [format_resolution_response(outcome) for outcome in outcomes]

    return format_bulk_response(
        hostnames=hostnames, results=results, total_time=time.time() - start_time
    )
