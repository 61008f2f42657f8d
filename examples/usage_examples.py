#!/usr/bin/env python3
"""
Example usage of the DoH Flag Resolver
Demonstrates provider racing, caching and the failure outcomes
"""

import asyncio
import tempfile
from pathlib import Path

from doh_flag_resolver import create_resolver
from doh_flag_resolver.config import configure_logging, flag_icon_url


async def main():
    """Demonstrate rate-limited DoH resolution"""

    configure_logging("INFO")
    cache_path = Path(tempfile.gettempdir()) / "doh_flag_resolver_example.json"
    resolver = create_resolver(cache_path=str(cache_path))

    print("DoH Flag Resolver - Example Usage")
    print("=" * 50)

    try:
        # Example 1: Single lookup (races Google and Cloudflare)
        print("\n1. Single Lookup")
        print("-" * 30)
        outcome = await resolver.resolve("ipfs.io")
        if outcome.ok:
            code = outcome.record.country_code
            print(f"{outcome.hostname} -> {outcome.ip} ({code}) via {outcome.provider}")
            print(f"Flag: {flag_icon_url(code)}")
        else:
            print(f"{outcome.hostname} failed: {outcome.error.kind}")

        # Example 2: Repeat lookup is served from the cache
        print("\n2. Cached Lookup")
        print("-" * 30)
        outcome = await resolver.resolve("ipfs.io")
        print(f"from_cache={outcome.from_cache}")

        # Example 3: A batch shares the one-request-per-two-seconds limits
        print("\n3. Batch Lookup")
        print("-" * 30)
        hostnames = ["dweb.link", "cloudflare-ipfs.com", "gateway.pinata.cloud", "no-such-host.invalid"]
        for outcome in await resolver.resolve_many(hostnames):
            detail = outcome.ip if outcome.ok else outcome.error.kind
            print(f"  {outcome.hostname}: {detail}")

        print("\n4. Limiter Statistics")
        print("-" * 30)
        print(resolver.get_stats())
    finally:
        await resolver.close()


if __name__ == "__main__":
    asyncio.run(main())
