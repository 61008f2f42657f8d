"""
Parameter normalization for resolver inputs and tool arguments.
Works around FastMCP parameter type handling and canonicalizes hostnames.
"""

import re
from typing import Any, Union

import dns.exception
import dns.name

_HOSTNAME_CHARS = re.compile(r"^[a-z0-9._-]+$")


def normalize_hostname(value: Any) -> str:
    """
    Canonicalize a hostname for cache keys and DoH queries.

    Lower-cases, strips surrounding whitespace and the trailing root dot,
    and IDNA-encodes internationalized names.

    Args:
        value: Hostname as given by the caller

    Returns:
        Canonical hostname, e.g. "example.com"

    Raises:
        ValueError: If the value is not a usable hostname
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Hostname must be a non-empty string, got {value!r}")

    try:
        name = dns.name.from_text(value.strip())
    except dns.exception.DNSException as e:
        raise ValueError(f"Invalid hostname {value!r}: {e}") from e

    hostname = name.to_text(omit_final_dot=True).lower()
    if not hostname or hostname == "." or not _HOSTNAME_CHARS.match(hostname):
        raise ValueError(f"Invalid hostname {value!r}")
    return hostname


def ensure_int(value: Any) -> Union[int, None]:
    """
    Ensure a value is converted to int or None.
    Works around FastMCP parameter validation issues.

    Args:
        value: Value to convert (can be str, int, or None)

    Returns:
        int or None
    """
    if value is None:
        return None

    if isinstance(value, int):
        return value

    try:
        return int(value)
    except (ValueError, TypeError):
        return None
