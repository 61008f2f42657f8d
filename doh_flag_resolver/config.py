"""
Configuration management for the DoH Flag Resolver
Centralized settings for rate limiting, timeouts, caching, providers and logging
"""

import logging
import os
from dataclasses import dataclass, fields


@dataclass
class ResolverConfig:
    """
    Main configuration class for the DoH Flag Resolver
    Provides centralized management of all resolver settings
    """

    # Cache Configuration
    cache_ttl_seconds: float = 7 * 24 * 60 * 60.0  # 7 days
    cache_path: str | None = None  # None keeps records in memory only

    # Providers to race, comma separated names from DOH_PROVIDER_TEMPLATES
    provider_names: str = "google,cloudflare"

    # Per-provider Token Bucket Configuration
    limiter_bucket_size: int = 1
    limiter_tokens_per_interval: int = 1
    limiter_interval: float = 2.0  # seconds

    # Timeout Configuration
    request_timeout: float = 10.0  # seconds, per DoH request
    max_timeout: float = 60.0
    min_timeout: float = 1.0
    race_timeout: float = 60.0  # total wait for any provider token
    max_race_rounds: int | None = None

    # Geo Enrichment Configuration (ip-api.com free tier)
    geo_rate_limit: int = 45
    geo_period: float = 60.0

    # Concurrency Configuration
    default_max_workers: int = 10
    max_concurrent_workers: int = 50  # safety limit

    # Logging Configuration
    log_level: str = "INFO"

    def validate_timeout(self, timeout: float) -> float:
        """Validate and clamp timeout to acceptable range"""
        return max(self.min_timeout, min(timeout, self.max_timeout))

    def validate_max_workers(self, workers: int) -> int:
        """Validate and clamp max workers to acceptable range"""
        return max(1, min(workers, self.max_concurrent_workers))

    def provider_list(self) -> list[str]:
        """Provider names from provider_names, validated and de-duplicated"""
        names = []
        for raw in self.provider_names.split(","):
            if raw.strip():
                name = validate_provider_name(raw.strip())
                if name not in names:
                    names.append(name)
        if not names:
            raise ValueError("At least one DoH provider must be configured")
        return names

    @classmethod
    def from_env(cls, prefix: str = "DOH_RESOLVER_") -> "ResolverConfig":
        """
        Build a configuration, overriding defaults from environment variables

        Each field maps to PREFIX + upper-cased field name, e.g.
        DOH_RESOLVER_CACHE_PATH or DOH_RESOLVER_LIMITER_INTERVAL.

        Raises:
            ValueError: If a variable cannot be converted to the field type
        """
        defaults = cls()
        overrides = {}
        for f in fields(cls):
            raw = os.environ.get(prefix + f.name.upper())
            if raw is None:
                continue
            current = getattr(defaults, f.name)
            if f.name in ("cache_path", "log_level", "provider_names"):
                overrides[f.name] = raw
            elif f.name == "max_race_rounds":
                overrides[f.name] = int(raw) if raw else None
            elif isinstance(current, int):
                overrides[f.name] = int(raw)
            else:
                overrides[f.name] = float(raw)
        return cls(**overrides)


# DoH Provider Query Templates ({hostname} is substituted per query)
DOH_PROVIDER_TEMPLATES = {
    "google": "https://dns.google/resolve?name={hostname}&type=A",
    "cloudflare": "https://cloudflare-dns.com/dns-query?name={hostname}&type=A",
}

DOH_CONTENT_TYPE = "application/dns-json"

# DNS record type code for A records
A_RECORD_TYPE = 1

# Geo Enrichment Endpoint
IP_API_URL = "http://ip-api.com/json/{ip}"
IP_API_FIELDS = "status,message,country,countryCode"

# Country flag icons, keyed by lower-cased ISO country code
FLAG_ICON_URL = (
    "https://ipfs.io/ipfs/QmaYjj5BHGAWfopTdE8ESzypbuthsZqTeqz9rEuh3EJZi6/{code}.svg"
)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Global configuration instance
config = ResolverConfig()


def validate_provider_name(name: str) -> str:
    """
    Validate DoH provider name

    Args:
        name: Provider name to validate

    Returns:
        Validated provider name in lowercase

    Raises:
        ValueError: If provider is not supported
    """
    name = name.lower()
    if name not in DOH_PROVIDER_TEMPLATES:
        raise ValueError(
            f"Unsupported provider: {name}. "
            f"Supported providers: {', '.join(DOH_PROVIDER_TEMPLATES)}"
        )
    return name


def flag_icon_url(country_code: str) -> str:
    """Flag icon URL for an ISO 3166 alpha-2 country code"""
    return FLAG_ICON_URL.format(code=country_code.lower())


def configure_logging(level: str | int | None = None) -> logging.Logger:
    """
    Attach a stream handler to the package logger

    Calling it again only updates the level, so handlers are never duplicated.

    Args:
        level: Logging level name or number (default: config.log_level)

    Returns:
        The package logger
    """
    logger = logging.getLogger("doh_flag_resolver")
    logger.setLevel(level if level is not None else config.log_level.upper())
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    return logger


# Configuration validation on import
def _validate_config():
    """Validate configuration on module import"""
    assert config.cache_ttl_seconds > 0, "Cache TTL must be positive"
    assert config.limiter_bucket_size >= 1, "Bucket size must be at least 1"
    assert config.limiter_tokens_per_interval >= 0, "Refill rate cannot be negative"
    assert config.limiter_interval > 0, "Limiter interval must be positive"
    assert config.request_timeout > 0, "Timeout must be positive"
    assert config.race_timeout > 0, "Race timeout must be positive"
    assert config.default_max_workers > 0, "Max workers must be positive"
    assert config.provider_list(), "At least one provider must be configured"

    for name, template in DOH_PROVIDER_TEMPLATES.items():
        assert "{hostname}" in template, f"Provider {name} template must contain {{hostname}}"
        assert template.startswith("https://"), f"Provider {name} must use HTTPS"


# Run validation on import
_validate_config()
