"""
HSTS prober.

Sends one HEAD (or GET) request to an https URL and reports whether the response
carries a ``Strict-Transport-Security`` header.

Security note: TLS certificate verification is switched off for every request
sent from here (``verify=False``). Self-signed, expired and otherwise untrusted
certificates are accepted on purpose, since the point is to observe the header
whatever the state of the certificate. Do not reuse this module as a general
HTTP client.
"""

import logging
import time
import warnings
from typing import Callable, Optional

import requests
import urllib3
from urllib3.exceptions import InsecureRequestWarning
from urllib3.util import Timeout

from core.config import ProbeConfig, APP_NAME, VERSION
from core.exceptions import ValidationError
from core.interfaces import (
    IProber, NormalizedUrl, ProbeMethod, ProbeOutcome, Supported, NotSupported, Failed,
    HTTPS_SCHEME
)
from core.logging_config import PerformanceLogger, SecurityLogger

logger = logging.getLogger("hstsprobe.prober")

HSTS_HEADER = "Strict-Transport-Security"
DEFAULT_USER_AGENT = f"{APP_NAME}/{VERSION}"

# Raised when no response object exists at all
TRANSPORT_ERRORS = (requests.RequestException, urllib3.exceptions.HTTPError, OSError)


def classify_response(response: requests.Response) -> ProbeOutcome:
    """Map a response of any status code to Supported / NotSupported."""
    value = response.headers.get(HSTS_HEADER)
    if value is not None and value.strip():
        return Supported(value)
    return NotSupported()


def describe_failure(error: BaseException) -> str:
    """Human readable reason for a request that produced no response."""
    if isinstance(error, requests.exceptions.Timeout):
        label = "Timed out"
    elif isinstance(error, requests.exceptions.SSLError):
        label = "TLS handshake failed"
    elif isinstance(error, requests.exceptions.ProxyError):
        label = "Proxy error"
    elif isinstance(error, requests.exceptions.ConnectionError):
        label = "Connection failed"
    elif isinstance(error, (requests.exceptions.InvalidURL, requests.exceptions.InvalidHeader)):
        label = "Invalid request"
    else:
        label = "Request failed"

    cause = error.args[0] if error.args else None
    if isinstance(cause, urllib3.exceptions.MaxRetryError) and cause.reason is not None:
        cause = cause.reason
    detail = str(cause if cause is not None else error).strip()
    return f"{label}: {detail}" if detail else label


class HSTSProber(IProber):
    """Checks a single https URL for HSTS support.

    Certificate verification is disabled (see module docstring). Every call to
    ``probe`` uses its own ``requests.Session``; nothing is shared between
    probes and nothing is retried.
    """

    def __init__(self, user_agent: str = DEFAULT_USER_AGENT, follow_redirects: bool = True,
                 session_factory: Callable[[], requests.Session] = requests.Session):
        self.user_agent = user_agent
        self.follow_redirects = follow_redirects
        self.session_factory = session_factory
        self.performance_logger = PerformanceLogger()
        SecurityLogger().log_certificate_verification_disabled(type(self).__name__)

    @classmethod
    def from_config(cls, probe_config: ProbeConfig) -> "HSTSProber":
        return cls(user_agent=probe_config.user_agent,
                   follow_redirects=probe_config.follow_redirects)

    def probe(self, url: NormalizedUrl, timeout_ms: int, use_get: bool = False) -> ProbeOutcome:
        """Probe ``url`` once.

        Args:
            url: normalized https URL
            timeout_ms: deadline for the whole exchange, in milliseconds
            use_get: send GET instead of HEAD

        Returns:
            Supported, NotSupported or Failed. Network faults never escape.

        Raises:
            ValidationError: ``url`` is not https or ``timeout_ms`` is negative
        """
        if not isinstance(url, NormalizedUrl) or url.scheme != HTTPS_SCHEME:
            raise ValidationError("Only HTTPS scheme is supported.", field="url")
        if timeout_ms is None or timeout_ms < 0:
            raise ValidationError(f"Timeout must not be negative: {timeout_ms}", field="timeout_ms")

        method = ProbeMethod.from_flag(use_get)
        started = time.monotonic()
        logger.debug("Probing %s with %s (timeout %d ms)", url, method.value, timeout_ms)

        with self.session_factory() as session:
            response = None
            try:
                response = self._exchange(session, url, method, timeout_ms)
                outcome = classify_response(response)
            except TRANSPORT_ERRORS as e:
                response = getattr(e, "response", None)
                # requests.Response is falsy for 4xx/5xx, compare with None
                if response is None:
                    outcome = Failed(describe_failure(e))
                else:
                    outcome = classify_response(response)
            finally:
                if response is not None:
                    response.close()

        duration = time.monotonic() - started
        logger.info("%s -> %s %s", url, outcome.status.value, outcome.message)
        self.performance_logger.log_probe_performance(url.url, method.value, duration, outcome.status.value)
        return outcome

    def _exchange(self, session: requests.Session, url: NormalizedUrl, method: ProbeMethod,
                  timeout_ms: int) -> requests.Response:
        # urllib3 rejects a zero deadline
        deadline = time.monotonic() + max(timeout_ms, 1) / 1000.0

        session.verify = False
        session.headers["User-Agent"] = self.user_agent

        with warnings.catch_warnings():
            warnings.simplefilter("ignore", InsecureRequestWarning)
            # verify is passed per call; otherwise REQUESTS_CA_BUNDLE overrides session.verify
            response = session.request(
                method.value, url.url,
                timeout=self._remaining(deadline),
                verify=False,
                allow_redirects=False,
                stream=True
            )

            redirects = 0
            while self.follow_redirects and response.is_redirect and response.next is not None:
                if redirects >= session.max_redirects:
                    raise requests.TooManyRedirects(
                        f"Exceeded {session.max_redirects} redirects.", response=response
                    )
                next_request = response.next
                response.close()
                redirects += 1
                logger.debug("Following redirect to %s", next_request.url)
                response = session.send(
                    next_request,
                    timeout=self._remaining(deadline),
                    verify=False,
                    allow_redirects=False,
                    stream=True
                )

        return response

    @staticmethod
    def _remaining(deadline: float) -> Timeout:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise requests.exceptions.Timeout("Request timed out.")
        return Timeout(total=remaining)


def probe(url: NormalizedUrl, timeout_ms: int = 5000, use_get: bool = False,
          prober: Optional[HSTSProber] = None) -> ProbeOutcome:
    """Probe a single URL with a default prober."""
    return (prober or HSTSProber()).probe(url, timeout_ms, use_get)
