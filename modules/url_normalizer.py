"""
URL normalization for the HSTS probe.

Turns whatever the user typed (``example.com``, ``http://example.com:8080/x``,
``https://example.com:8443``) into a ``NormalizedUrl`` with the ``https`` scheme,
or ``None`` when the text cannot be read as a URL.
"""

import ipaddress
import logging
import re
from typing import Optional
from urllib.parse import urlsplit, quote

from core.interfaces import IUrlNormalizer, NormalizedUrl, HTTPS_SCHEME, HTTPS_DEFAULT_PORT

logger = logging.getLogger("hstsprobe.normalizer")

SCHEME_REGEX = re.compile(r'^[a-z][a-z0-9+.\-]*$')
HOST_LABEL_REGEX = re.compile(r'^(?!-)[a-z0-9_\-]{1,63}(?<!-)$')
PATH_SAFE_CHARS = "/%:@!$&'()*+,;=-._~"


class UrlNormalizer(IUrlNormalizer):
    """Parses any string as an https URL.

    Text without a scheme is read as ``<assumed_scheme>://<text>``. Whenever the
    scheme is not ``https`` it is replaced by ``https`` and the port is reset to
    443, so ``http://example.com:8080`` is probed on ``https://example.com``.
    An explicit port on an ``https`` URL is kept.
    """

    def __init__(self, assumed_scheme: str = "http"):
        self.assumed_scheme = assumed_scheme

    def normalize(self, raw: Optional[str]) -> Optional[NormalizedUrl]:
        try:
            return self._parse(raw)
        except (ValueError, TypeError, UnicodeError) as e:
            logger.debug("Rejected %r: %s", raw, e)
            return None

    def _parse(self, raw: Optional[str]) -> NormalizedUrl:
        if raw is None:
            raise ValueError("no input")
        text = str(raw).strip()
        if not text:
            raise ValueError("empty input")
        if "://" not in text:
            text = f"{self.assumed_scheme}://{text}"

        parts = urlsplit(text)
        if any(ch.isspace() for ch in parts.netloc):
            raise ValueError("whitespace in host")

        scheme = parts.scheme.lower()
        if not SCHEME_REGEX.match(scheme):
            raise ValueError(f"invalid scheme {parts.scheme!r}")

        host = self._validate_host(parts.hostname)
        # .port raises ValueError for non-numeric or out-of-range ports
        port = parts.port
        if port == 0:
            raise ValueError("port 0")

        if scheme != HTTPS_SCHEME:
            scheme = HTTPS_SCHEME
            port = HTTPS_DEFAULT_PORT
        elif port is None:
            port = HTTPS_DEFAULT_PORT

        userinfo = parts.netloc.rpartition("@")[0] if "@" in parts.netloc else ""

        return NormalizedUrl(
            scheme=scheme,
            host=host,
            port=port,
            path=quote(parts.path, safe=PATH_SAFE_CHARS) or "/",
            query=parts.query,
            fragment=parts.fragment,
            userinfo=userinfo,
        )

    def _validate_host(self, hostname: Optional[str]) -> str:
        if not hostname:
            raise ValueError("missing host")

        try:
            return str(ipaddress.ip_address(hostname))
        except ValueError:
            pass

        ascii_host = hostname.encode("idna").decode("ascii").lower()
        labels = ascii_host[:-1].split(".") if ascii_host.endswith(".") else ascii_host.split(".")
        if len(ascii_host) > 253 or not all(HOST_LABEL_REGEX.match(label) for label in labels):
            raise ValueError(f"invalid host {hostname!r}")
        return ascii_host


_default_normalizer = UrlNormalizer()


def normalize(raw: Optional[str]) -> Optional[NormalizedUrl]:
    """Parse ``raw`` as an https URL; ``None`` if it is not one. Never raises."""
    return _default_normalizer.normalize(raw)
