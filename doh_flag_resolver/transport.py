"""
DNS-over-HTTPS transport
Issues DoH JSON queries over aiohttp and extracts A records from the answer
"""

import asyncio
import logging
from typing import Any

import aiohttp

from .config import A_RECORD_TYPE, DOH_CONTENT_TYPE, config
from .errors import NoAnswerSection, NoARecord, RequestFailed

logger = logging.getLogger(__name__)


class DohTransport:
    """
    aiohttp-backed DoH client

    The session is created on first use and reused across queries. A
    session passed in by the caller is never closed by the transport.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        timeout: float | None = None,
    ):
        self.timeout = config.validate_timeout(timeout or config.request_timeout)
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def get_json(self, url: str, hostname: str) -> dict[str, Any]:
        """
        GET a DoH JSON response

        Args:
            url: Fully qualified provider query URL
            hostname: Hostname being resolved, for error context

        Returns:
            Decoded JSON body

        Raises:
            RequestFailed: Network error, timeout, non-2xx status or malformed JSON
        """
        session = await self._get_session()
        try:
            async with session.get(
                url,
                headers={"Accept": DOH_CONTENT_TYPE},
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as resp:
                if not 200 <= resp.status < 300:
                    raise RequestFailed(
                        hostname, f"HTTP {resp.status} from {url}", url=url
                    )
                # Providers answer with application/dns-json, not application/json
                body = await resp.json(content_type=None)
        except RequestFailed:
            raise
        except asyncio.TimeoutError:
            raise RequestFailed(
                hostname, f"Timeout after {self.timeout}s querying {url}", url=url
            ) from None
        except (aiohttp.ClientError, ValueError) as e:
            raise RequestFailed(hostname, f"{type(e).__name__}: {e}", url=url) from e

        if not isinstance(body, dict):
            raise RequestFailed(hostname, f"Unexpected JSON body from {url}", url=url)
        return body

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()


def extract_a_record(response: dict[str, Any], hostname: str) -> str:
    """
    Return the data of the first A record in a DoH JSON response

    Entries are scanned in response order; other record types (CNAME
    chains, TXT) are skipped.

    Raises:
        NoAnswerSection: If the response has no Answer list
        NoARecord: If no Answer entry has type 1
    """
    answers = response.get("Answer")
    if not isinstance(answers, list):
        raise NoAnswerSection(
            hostname, f'Response does not contain the "Answer" property for {hostname}'
        )
    for answer in answers:
        if isinstance(answer, dict) and answer.get("type") == A_RECORD_TYPE:
            data = answer.get("data")
            if data:
                return str(data)
    raise NoARecord(hostname, f"No A record in {len(answers)} answers for {hostname}")
