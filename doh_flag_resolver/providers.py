"""
DoH provider registry and token race
Picks whichever rate-limited provider can accept a request soonest
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Iterator
from urllib.parse import quote

from .config import DOH_PROVIDER_TEMPLATES, config, validate_provider_name
from .errors import ProviderUnavailable
from .rate_limiter import TokenBucketLimiter

logger = logging.getLogger(__name__)


@dataclass
class Provider:
    """A DoH upstream and the token bucket guarding it"""

    name: str
    url_template: str
    limiter: TokenBucketLimiter

    def query_url(self, hostname: str) -> str:
        return self.url_template.format(hostname=quote(hostname, safe=".-_"))


@dataclass(frozen=True)
class ProviderClaim:
    """A provider whose token was actually taken, with the URL to query"""

    provider: Provider
    url: str


class Providers:
    """
    Explicitly constructed provider registry

    One instance is shared by every resolution so each provider's
    limiter bounds the whole process, not a single lookup.
    """

    def __init__(self, providers: list[Provider]):
        if not providers:
            raise ValueError("At least one provider is required")
        names = [p.name for p in providers]
        duplicates = {n for n in names if names.count(n) > 1}
        if duplicates:
            raise ValueError(f"Duplicate provider names: {', '.join(sorted(duplicates))}")
        self._providers = {p.name: p for p in providers}

    def __iter__(self) -> Iterator[Provider]:
        return iter(self._providers.values())

    def __len__(self) -> int:
        return len(self._providers)

    def __contains__(self, name: str) -> bool:
        return name in self._providers

    def __getitem__(self, name: str) -> Provider:
        return self._providers[name]

    @property
    def names(self) -> list[str]:
        return list(self._providers)

    def start_all(self) -> None:
        """Start every stopped limiter; running ones are left alone"""
        for provider in self:
            if provider.limiter.is_stopped:
                provider.limiter.start()
                logger.info("Started rate limiter for provider %s", provider.name)

    def get_stats(self) -> dict[str, dict]:
        return {p.name: p.limiter.get_stats() for p in self}


def build_default_providers(
    bucket_size: int | None = None,
    tokens_per_interval: int | None = None,
    interval: float | None = None,
    names: list[str] | None = None,
) -> Providers:
    """
    Factory function for the standard provider table

    Every provider gets its own stopped limiter; unset arguments fall
    back to the global configuration (1 token per 2 seconds).

    Args:
        names: Subset of DOH_PROVIDER_TEMPLATES to race (default: all of them)

    Returns:
        Providers registry with one entry per selected provider

    Raises:
        ValueError: If a name is not a supported provider
    """
    if names:
        selected = [validate_provider_name(name) for name in names]
    else:
        selected = list(DOH_PROVIDER_TEMPLATES)
    return Providers(
        [
            Provider(
                name=name,
                url_template=DOH_PROVIDER_TEMPLATES[name],
                limiter=TokenBucketLimiter(
                    bucket_size=bucket_size or config.limiter_bucket_size,
                    tokens_per_interval=(
                        config.limiter_tokens_per_interval
                        if tokens_per_interval is None
                        else tokens_per_interval
                    ),
                    interval=interval or config.limiter_interval,
                    stopped=True,
                    name=name,
                ),
            )
            for name in selected
        ]
    )


class ProviderRacer:
    """
    Races token waits across all providers

    Every provider gets a concurrent wait-then-take attempt; the first
    attempt that actually takes a token wins. When every attempt loses
    its token to another caller, the race starts over. Rounds are spaced
    by refill intervals, so retrying never spins.
    """

    def __init__(self, providers: Providers, max_rounds: int | None = None):
        """
        Initialize racer

        Args:
            providers: Shared provider registry
            max_rounds: Give up after this many rounds (default: unbounded)
        """
        self.providers = providers
        self.max_rounds = max_rounds
        self.rounds = 0
        self.empty_rounds = 0
        self.wins: dict[str, int] = {name: 0 for name in providers.names}

    async def acquire(self, hostname: str, timeout: float | None = None) -> ProviderClaim:
        """
        Wait for any provider token and return the claim

        Args:
            hostname: Hostname the claimed URL will query
            timeout: Total seconds to wait across all rounds (default: no limit)

        Returns:
            ProviderClaim for the winning provider

        Raises:
            ProviderUnavailable: On timeout or when max_rounds is exhausted
        """
        self.providers.start_all()
        try:
            return await asyncio.wait_for(self._race_until_claimed(hostname), timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "No provider token for %s within %.1fs", hostname, timeout
            )
            raise ProviderUnavailable(
                hostname, f"No provider token available within {timeout}s"
            ) from None

    async def _race_until_claimed(self, hostname: str) -> ProviderClaim:
        attempt = 0
        while self.max_rounds is None or attempt < self.max_rounds:
            attempt += 1
            claim = await self._race_once(hostname)
            if claim is not None:
                self.wins[claim.provider.name] = self.wins.get(claim.provider.name, 0) + 1
                logger.debug("Provider %s won the race for %s", claim.provider.name, hostname)
                return claim
            self.empty_rounds += 1
            logger.info(
                "Awaited tokens for %s but could not take any, racing again", hostname
            )
        raise ProviderUnavailable(
            hostname, f"No provider token taken after {self.max_rounds} rounds"
        )

    async def _race_once(self, hostname: str) -> ProviderClaim | None:
        self.rounds += 1
        winner: list[ProviderClaim] = []

        async def attempt(provider: Provider) -> ProviderClaim | None:
            await provider.limiter.await_tokens(1)
            # A late waker leaves its token for the next caller
            if winner or not provider.limiter.try_remove_tokens(1):
                return None
            winner.append(ProviderClaim(provider, provider.query_url(hostname)))
            return winner[0]

        # Launch order is shuffled so no provider is systematically first
        order = random.sample(list(self.providers), len(self.providers))
        pending = {asyncio.ensure_future(attempt(p)) for p in order}
        try:
            while pending:
                done, pending = await asyncio.wait(
                    pending, return_when=asyncio.FIRST_COMPLETED
                )
                for task in done:
                    claim = task.result()
                    if claim is not None:
                        return claim
            return None
        finally:
            # Pending losers are still inside await_tokens, which takes nothing
            for task in pending:
                task.cancel()

    def get_stats(self) -> dict:
        return {
            "rounds": self.rounds,
            "empty_rounds": self.empty_rounds,
            "wins": dict(self.wins),
            "limiters": self.providers.get_stats(),
        }
