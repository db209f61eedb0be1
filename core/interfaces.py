"""
HSTS Probe core interfaces.
Domain value types shared by every module, plus the abstract component interfaces.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Union, Any
from enum import Enum


HTTPS_SCHEME = "https"
HTTPS_DEFAULT_PORT = 443


class ProbeMethod(Enum):
    """HTTP method used for a probe."""
    HEAD = "HEAD"
    GET = "GET"

    @classmethod
    def from_flag(cls, use_get: bool) -> "ProbeMethod":
        return cls.GET if use_get else cls.HEAD


class OutcomeStatus(Enum):
    """Tag of a probe outcome."""
    SUPPORTED = "supported"
    NOT_SUPPORTED = "not_supported"
    FAILED = "failed"


@dataclass(frozen=True)
class NormalizedUrl:
    """A canonical https URL. Only the URL normalizer builds these."""
    scheme: str
    host: str
    port: int = HTTPS_DEFAULT_PORT
    path: str = "/"
    query: str = ""
    fragment: str = ""
    userinfo: str = ""

    @property
    def netloc(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        if self.port != HTTPS_DEFAULT_PORT:
            host = f"{host}:{self.port}"
        if self.userinfo:
            return f"{self.userinfo}@{host}"
        return host

    @property
    def url(self) -> str:
        text = f"{self.scheme}://{self.netloc}{self.path or '/'}"
        if self.query:
            text += f"?{self.query}"
        if self.fragment:
            text += f"#{self.fragment}"
        return text

    def __str__(self) -> str:
        return self.url


@dataclass(frozen=True)
class Supported:
    """HSTS header present and non-blank."""
    header_value: str

    status = OutcomeStatus.SUPPORTED
    success = True

    @property
    def message(self) -> str:
        return self.header_value

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status.value, "success": self.success, "message": self.message}


@dataclass(frozen=True)
class NotSupported:
    """A response was obtained but it carried no usable HSTS header."""

    status = OutcomeStatus.NOT_SUPPORTED
    success = False

    @property
    def message(self) -> str:
        return ""

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status.value, "success": self.success, "message": self.message}


@dataclass(frozen=True)
class Failed:
    """No response could be obtained at all."""
    reason: str

    status = OutcomeStatus.FAILED
    success = False

    def __post_init__(self):
        if not (self.reason or "").strip():
            raise ValueError("Failed outcome requires a non-empty reason")

    @property
    def message(self) -> str:
        return self.reason

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status.value, "success": self.success, "message": self.message}


ProbeOutcome = Union[Supported, NotSupported, Failed]


@dataclass(frozen=True)
class BatchEntry:
    """One probed line of a batch: display label, probed URL and outcome."""
    label: str
    url: NormalizedUrl
    outcome: ProbeOutcome

    def to_dict(self) -> Dict[str, Any]:
        data = {"label": self.label, "url": self.url.url}
        data.update(self.outcome.to_dict())
        return data


class IUrlNormalizer(ABC):
    """URL normalizer interface"""

    @abstractmethod
    def normalize(self, raw: Optional[str]) -> Optional[NormalizedUrl]:
        """Turn free-form text into an https URL, or None when it is not a URL."""
        pass


class IProber(ABC):
    """HSTS prober interface"""

    @abstractmethod
    def probe(self, url: NormalizedUrl, timeout_ms: int, use_get: bool = False) -> ProbeOutcome:
        """Issue one request and classify the response."""
        pass


class IReporter(ABC):
    """Report renderer interface"""

    @abstractmethod
    def render_single(self, url: NormalizedUrl, outcome: ProbeOutcome, fmt: str = "text") -> str:
        """Render the outcome of a single probe."""
        pass

    @abstractmethod
    def render_batch(self, entries: Sequence[BatchEntry], fmt: str = "text") -> str:
        """Render the outcomes of a batch."""
        pass

    @abstractmethod
    def summarize(self, entries: Sequence[BatchEntry]) -> Dict[str, int]:
        """Count outcomes per status."""
        pass

