"""
URL Resolver
Normalizes URL bar input into a validated absolute target URL
"""

import ipaddress
import re
from urllib.parse import urlsplit, urlunsplit

from loguru import logger

from .errors import InvalidUrl
from .models import ResolvedTarget


ALLOWED_SCHEMES = ("http", "https")

_LABEL_RE = re.compile(r"^[a-z0-9_](?:[a-z0-9_-]{0,61}[a-z0-9_])?$")


def _is_valid_hostname(hostname: str) -> bool:
    if not hostname or len(hostname) > 253:
        return False

    try:
        ipaddress.ip_address(hostname)
        return True
    except ValueError:
        pass

    try:
        ascii_host = hostname.encode("idna").decode("ascii")
    except UnicodeError:
        return False

    labels = ascii_host.rstrip(".").split(".")
    return all(_LABEL_RE.match(label) for label in labels)


def resolve(raw_input: str) -> ResolvedTarget:
    """Turn user input into a ResolvedTarget, https:// is assumed when no scheme is given"""

    if raw_input is None:
        raise InvalidUrl("", "URL is required")

    candidate = raw_input.strip()
    if not candidate:
        raise InvalidUrl(raw_input, "URL is required")

    if not candidate.lower().startswith(("http://", "https://")):
        candidate = f"https://{candidate}"

    try:
        parts = urlsplit(candidate)
        # Accessing .port validates it
        parts.port
    except ValueError as e:
        logger.debug(f"Unparseable URL {candidate!r}: {e}")
        raise InvalidUrl(raw_input) from e

    scheme = parts.scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        raise InvalidUrl(raw_input)

    hostname = parts.hostname or ""
    if not _is_valid_hostname(hostname):
        logger.debug(f"Rejected host {hostname!r} in {candidate!r}")
        raise InvalidUrl(raw_input)

    if any(ch.isspace() for ch in parts.netloc):
        raise InvalidUrl(raw_input)

    absolute_url = urlunsplit((scheme, parts.netloc, parts.path, parts.query, parts.fragment))

    return ResolvedTarget(
        scheme=scheme,
        host=parts.netloc.rsplit("@", 1)[-1].lower(),
        path=parts.path or "/",
        absolute_url=absolute_url,
    )
