"""
Rate-limited DoH resolution with result caching
Cache lookup, provider race, DoH query, A record extraction, geo enrichment
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable

from .cache import InMemoryResultCache, JsonFileResultCache, ResolutionRecord, ResultCache
from .config import ResolverConfig, config
from .enrichment import GeoEnrichment, IpApiGeoEnrichment
from .errors import EnrichmentFailed, InvalidHostname, ResolutionError
from .param_utils import normalize_hostname
from .providers import ProviderRacer, Providers, build_default_providers
from .transport import DohTransport, extract_a_record

logger = logging.getLogger(__name__)


@dataclass
class ResolutionOutcome:
    """Result of one resolve() call: a record or the error that prevented it"""

    hostname: str
    record: ResolutionRecord | None = None
    error: ResolutionError | None = None
    from_cache: bool = False
    provider: str | None = None
    url: str | None = None

    @property
    def ok(self) -> bool:
        return self.record is not None and self.error is None

    @property
    def ip(self) -> str | None:
        return self.record.ip if self.record else None


class Resolver:
    """
    Resolves hostnames to IPv4 addresses through racing DoH providers

    A fresh cached record short-circuits everything. Otherwise one provider
    is claimed through the race, queried once, and the first A record is
    enriched and cached. Failures are reported in the outcome and never
    retried against another provider within the same call.
    """

    def __init__(
        self,
        providers: Providers,
        cache: ResultCache,
        enrichment: GeoEnrichment,
        transport: DohTransport | None = None,
        settings: ResolverConfig | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize resolver

        Args:
            providers: Shared provider registry (one limiter per provider)
            cache: Result cache keyed by hostname
            enrichment: Geo lookup used before caching
            transport: DoH HTTP client (created from settings when omitted)
            settings: Resolver configuration (default: global config)
            clock: Wall clock in seconds, used for record timestamps
        """
        self.settings = settings or config
        self.providers = providers
        self.racer = ProviderRacer(providers, max_rounds=self.settings.max_race_rounds)
        self.cache = cache
        self.enrichment = enrichment
        self.transport = transport or DohTransport(timeout=self.settings.request_timeout)
        self._clock = clock

    async def resolve(self, hostname: str) -> ResolutionOutcome:
        """
        Resolve a hostname to a cached or freshly fetched record

        Args:
            hostname: Hostname to resolve

        Returns:
            ResolutionOutcome holding either the record or the error
        """
        try:
            key = normalize_hostname(hostname)
        except ValueError as e:
            logger.warning("Rejected hostname %r: %s", hostname, e)
            return ResolutionOutcome(
                hostname=str(hostname), error=InvalidHostname(str(hostname), str(e))
            )

        cached = self._cached_record(key)
        if cached is not None:
            logger.debug("Cache hit for %s (%s)", key, cached.ip)
            return ResolutionOutcome(hostname=key, record=cached, from_cache=True)

        provider = url = None
        try:
            claim = await self.racer.acquire(key, timeout=self.settings.race_timeout)
            provider, url = claim.provider.name, claim.url
            response = await self.transport.get_json(url, key)
            ip = extract_a_record(response, key)
            enrichment = await self._enrich(key, ip)
        except ResolutionError as e:
            logger.error("Resolution of %s via %s failed: %s", key, provider or "no provider", e)
            return ResolutionOutcome(hostname=key, error=e, provider=provider, url=url)

        record = ResolutionRecord(ip=ip, enrichment=enrichment, timestamp=self._clock())
        try:
            self.cache.put(key, record)
        except OSError as e:
            logger.error("Could not store result for %s in cache: %s", key, e)
        logger.info("Resolved %s to %s (%s) via %s", key, ip, record.country_code, provider)
        return ResolutionOutcome(hostname=key, record=record, provider=provider, url=url)

    def _cached_record(self, hostname: str) -> ResolutionRecord | None:
        record = self.cache.get(hostname)
        if record is None:
            return None
        if record.is_fresh(self._clock(), self.settings.cache_ttl_seconds):
            return record
        logger.debug("Cached record for %s is stale, refreshing", hostname)
        return None

    async def _enrich(self, hostname: str, ip: str) -> dict:
        try:
            enrichment = await self.enrichment.lookup(ip)
        except Exception as e:
            raise EnrichmentFailed(
                hostname, f"Geo lookup for {ip} raised {type(e).__name__}: {e}", ip=ip
            ) from e
        if not enrichment or not enrichment.get("country_code"):
            raise EnrichmentFailed(hostname, f"No country code for {ip}", ip=ip)
        return enrichment

    async def resolve_many(
        self, hostnames: list[str], max_concurrency: int | None = None
    ) -> list[ResolutionOutcome]:
        """
        Resolve several hostnames concurrently

        Provider limiters still bound the request rate; the semaphore only
        caps how many resolutions wait at once.

        Returns:
            Outcomes in the same order as hostnames
        """
        if not hostnames:
            return []
        workers = self.settings.validate_max_workers(
            max_concurrency or self.settings.default_max_workers
        )
        semaphore = asyncio.Semaphore(workers)

        async def limited(hostname: str) -> ResolutionOutcome:
            async with semaphore:
                return await self.resolve(hostname)

        return list(await asyncio.gather(*(limited(h) for h in hostnames)))

    def get_stats(self) -> dict:
        return {"cached_records": len(self.cache), **self.racer.get_stats()}

    async def close(self) -> None:
        """Close HTTP sessions owned by the transport and enrichment"""
        await self.transport.close()
        await self.enrichment.close()


def create_resolver(
    cache_path: str | None = None,
    settings: ResolverConfig | None = None,
    providers: Providers | None = None,
) -> Resolver:
    """
    Factory function to create a resolver with the default collaborators

    Args:
        cache_path: JSON cache file (overrides settings.cache_path; None keeps it in memory)
        settings: Resolver configuration (default: global config)
        providers: Provider registry (default: google and cloudflare)

    Returns:
        Configured Resolver instance
    """
    settings = settings or config
    path = cache_path or settings.cache_path
    cache = JsonFileResultCache(path) if path else InMemoryResultCache()
    return Resolver(
        providers=providers
        or build_default_providers(
            bucket_size=settings.limiter_bucket_size,
            tokens_per_interval=settings.limiter_tokens_per_interval,
            interval=settings.limiter_interval,
            names=settings.provider_list(),
        ),
        cache=cache,
        enrichment=IpApiGeoEnrichment(
            rate_limit=settings.geo_rate_limit,
            period=settings.geo_period,
            timeout=settings.request_timeout,
        ),
        transport=DohTransport(timeout=settings.request_timeout),
        settings=settings,
    )


_default_resolver: Resolver | None = None


def get_default_resolver() -> Resolver:
    """
    Process-wide resolver shared by the tool modules

    Built on first use from DOH_RESOLVER_* environment settings, so every
    caller draws from the same provider limiters and the same result cache.
    """
    global _default_resolver
    if _default_resolver is None:
        _default_resolver = create_resolver(settings=ResolverConfig.from_env())
    return _default_resolver


def set_default_resolver(resolver: Resolver | None) -> None:
    """Replace the shared resolver (None rebuilds it on next use)"""
    global _default_resolver
    _default_resolver = resolver
