"""
Core resolution tools
Single hostname resolution and limiter inspection exposed over MCP
"""

import time

from .formatters import format_error_response, format_resolution_response
from .resolvers import get_default_resolver
from .server import mcp


@mcp.tool()
async def resolve_hostname(hostname: str) -> dict:
    """
    Resolve a hostname to an IPv4 address with country metadata

    Queries Google or Cloudflare DNS-over-HTTPS, whichever has rate limit
    budget first. Results are cached for 7 days.

    Args:
        hostname: Hostname to resolve (e.g. example.com)

    Returns:
        Dictionary with ip, country_code, country_name and flag_icon_url,
        or an error entry describing why resolution failed
    """
    start_time = time.time()
    try:
        outcome = await get_default_resolver().resolve(hostname)
    except Exception as e:
        return {
            "hostname": hostname,
            "query_time_seconds": round(time.time() - start_time, 3),
            "error": format_error_response(
                e, context={"hostname": hostname, "operation": "resolve"}
            ),
        }

    response = format_resolution_response(outcome)
    response["query_time_seconds"] = round(time.time() - start_time, 3)
    return response


@mcp.tool()
async def limiter_status() -> dict:
    """
    Report per-provider token bucket state and race statistics

    Returns:
        Dictionary with cache size, race counters, provider wins and limiter state
    """
    return get_default_resolver().get_stats()
