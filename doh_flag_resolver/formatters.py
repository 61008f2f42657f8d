"""
Resolution result formatting utilities
Handles formatting of resolution outcomes, limiter state and error responses
"""

from datetime import datetime, timezone
from typing import Any

from .config import config, flag_icon_url
from .errors import ResolutionError

# Caller guidance per error kind
ERROR_HINTS = {
    "request_failed": {
        "possible_scenarios": [
            "Provider unreachable or rate limiting this client",
            "Network filtering of DoH endpoints",
            "Provider returned a non-JSON error page",
        ],
        "retry": True,
    },
    "no_answer_section": {
        "possible_scenarios": [
            "Hostname does not exist (NXDOMAIN)",
            "Provider returned SERVFAIL",
        ],
        "retry": False,
    },
    "no_a_record": {
        "possible_scenarios": [
            "Hostname only has AAAA or other record types",
            "Answer contains a CNAME chain without a final address",
        ],
        "retry": False,
    },
    "enrichment_failed": {
        "possible_scenarios": [
            "Geo lookup service unreachable or throttled",
            "Address is private or reserved and has no country",
        ],
        "retry": True,
    },
    "provider_unavailable": {
        "possible_scenarios": [
            "Every provider token is being consumed by other lookups",
            "A limiter is configured with a zero refill rate",
        ],
        "retry": True,
    },
    "invalid_hostname": {
        "possible_scenarios": ["Hostname is empty or contains invalid characters"],
        "retry": False,
    },
}


def format_error_response(
    error: Exception, context: dict[str, Any] | None = None
) -> dict[str, Any]:
    """
    Format error responses with a stable kind and caller hints

    Args:
        error: The exception that occurred
        context: Additional context (hostname, provider, etc.)

    Returns:
        Formatted error dictionary
    """
    kind = error.kind if isinstance(error, ResolutionError) else "unknown"

    response = {
        "error": kind,
        "type": type(error).__name__,
        "details": str(error),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if isinstance(error, ResolutionError) and error.url:
        response["url"] = error.url

    if context:
        response.update(context)

    hints = ERROR_HINTS.get(kind)
    if hints:
        response["hints"] = hints

    return response


def format_resolution_response(outcome) -> dict[str, Any]:
    """
    Format a ResolutionOutcome as a tool response

    Args:
        outcome: ResolutionOutcome from Resolver.resolve()

    Returns:
        Formatted response dictionary; "error" is present only on failure
    """
    response: dict[str, Any] = {
        "hostname": outcome.hostname,
        "from_cache": outcome.from_cache,
        "provider": outcome.provider,
    }

    if outcome.error is not None:
        response["error"] = format_error_response(
            outcome.error,
            context={"hostname": outcome.hostname, "provider": outcome.provider},
        )
        return response

    record = outcome.record
    enrichment = record.enrichment
    country_code = enrichment.get("country_code")
    age = datetime.now(timezone.utc).timestamp() - record.timestamp
    response.update(
        {
            "ip": record.ip,
            "country_code": country_code,
            "country_name": enrichment.get("country_name"),
            "flag_icon_url": flag_icon_url(country_code) if country_code else None,
            "resolved_at": datetime.fromtimestamp(record.timestamp, timezone.utc).isoformat(),
            "expires_in_seconds": max(0, round(config.cache_ttl_seconds - age)),
        }
    )
    return response


def format_bulk_response(
    hostnames: list, results: list, total_time: float
) -> dict[str, Any]:
    """
    Format bulk resolution response

    Args:
        hostnames: List of requested hostnames
        results: List of individual formatted results
        total_time: Total execution time

    Returns:
        Formatted bulk response dictionary
    """
    successful = sum(1 for r in results if "error" not in r)

    return {
        "bulk_query": True,
        "hostname_count": len(hostnames),
        "successful_resolutions": successful,
        "failed_resolutions": len(results) - successful,
        "cache_hits": sum(1 for r in results if r.get("from_cache")),
        "total_query_time_seconds": round(total_time, 3),
        "results": results,
    }
