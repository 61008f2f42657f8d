"""
Geo enrichment for resolved addresses
Maps an IPv4 address to country metadata through ip-api.com
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any

import aiohttp
from asyncio_throttle import Throttler

from .config import IP_API_FIELDS, IP_API_URL, config

logger = logging.getLogger(__name__)


class GeoEnrichment(ABC):
    """Collaborator that turns an IP into at least a country code"""

    @abstractmethod
    async def lookup(self, ip: str) -> dict[str, Any] | None:
        """
        Look up country metadata for an IP

        Returns:
            Dictionary with at least country_code and country_name, or None
        """

    async def close(self) -> None:
        pass


class IpApiGeoEnrichment(GeoEnrichment):
    """
    ip-api.com lookups, throttled to the free tier limit

    Failures are logged and reported as None; deciding what a missing
    country means is left to the caller.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        rate_limit: int | None = None,
        period: float | None = None,
        timeout: float | None = None,
    ):
        """
        Initialize enrichment client

        Args:
            session: Shared aiohttp session (created lazily when omitted)
            rate_limit: Requests allowed per period (default: config.geo_rate_limit)
            period: Throttle period in seconds (default: config.geo_period)
            timeout: Request timeout in seconds (default: config.request_timeout)
        """
        self.throttler = Throttler(
            rate_limit=rate_limit or config.geo_rate_limit,
            period=period or config.geo_period,
        )
        self.timeout = config.validate_timeout(timeout or config.request_timeout)
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def lookup(self, ip: str) -> dict[str, Any] | None:
        session = await self._get_session()
        url = IP_API_URL.format(ip=ip)

        async with self.throttler:
            try:
                async with session.get(
                    url,
                    params={"fields": IP_API_FIELDS},
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as resp:
                    if resp.status != 200:
                        logger.warning("ip-api.com returned HTTP %s for %s", resp.status, ip)
                        return None
                    data = await resp.json(content_type=None)
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
                logger.warning("ip-api.com lookup failed for %s: %s", ip, e)
                return None

        return parse_ip_api_response(data, ip)

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()


def parse_ip_api_response(data: Any, ip: str) -> dict[str, Any] | None:
    """
    Normalize an ip-api.com JSON body into an enrichment payload

    Returns:
        Dictionary with ip, country_code and country_name, or None when
        the lookup did not succeed or carried no country code
    """
    if not isinstance(data, dict) or data.get("status") != "success":
        message = data.get("message") if isinstance(data, dict) else None
        logger.warning("ip-api.com lookup unsuccessful for %s: %s", ip, message or data)
        return None

    country_code = data.get("countryCode")
    if not country_code:
        logger.error("ip-api.com returned no country code for %s", ip)
        return None

    return {
        "ip": ip,
        "country_code": str(country_code).upper(),
        "country_name": data.get("country"),
        "source": "ip-api",
    }
