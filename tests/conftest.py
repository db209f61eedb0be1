"""
Pytest configuration
Shared fixtures and test doubles for the HTTP layer
"""

import io
import logging
import socket
import ssl
import threading
from datetime import datetime, timedelta, timezone
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest
import requests
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID
from requests.structures import CaseInsensitiveDict

import core.config
import core.error_handler
import core.logging_config
from core.interfaces import IProber, NotSupported


ENV_VARS = [
    "HSTSPROBE_ENV", "HSTSPROBE_DEBUG", "HSTSPROBE_TIMEOUT_MS", "HSTSPROBE_USE_GET",
    "HSTSPROBE_FOLLOW_REDIRECTS", "HSTSPROBE_USER_AGENT", "HSTSPROBE_FULL_URLS",
    "HSTSPROBE_OUTPUT_FORMAT", "HSTSPROBE_LOG_LEVEL", "HSTSPROBE_LOG_FILE",
]

PROXY_VARS = ["HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "http_proxy", "https_proxy", "all_proxy"]


@pytest.fixture(autouse=True)
def isolated_globals(monkeypatch, tmp_path):
    """Fresh configuration, logging and error handler for every test."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)

    monkeypatch.setattr(core.config, "_config_manager",
                        core.config.ConfigManager(str(tmp_path / "missing.yaml")))
    monkeypatch.setattr(core.logging_config, "_logging_manager", None)
    monkeypatch.setattr(core.error_handler, "_error_handler", None)

    yield

    base_logger = logging.getLogger(core.logging_config.ROOT_LOGGER_NAME)
    for handler in list(base_logger.handlers):
        base_logger.removeHandler(handler)
        handler.close()
    base_logger.setLevel(logging.NOTSET)


@pytest.fixture
def no_proxy(monkeypatch):
    """Keep local socket tests away from any proxy configured in the environment."""
    for name in PROXY_VARS:
        monkeypatch.delenv(name, raising=False)


def make_response(status_code=200, headers=None, url="https://example.com/", next_request=None):
    """Build a real requests.Response without touching the network."""
    response = requests.Response()
    response.status_code = status_code
    response.headers = CaseInsensitiveDict(headers or {})
    response.url = url
    response.raw = io.BytesIO(b"")
    response._next = next_request
    return response


class FakeSession:
    """Stands in for requests.Session: records calls and replays scripted results."""

    max_redirects = 30

    def __init__(self, results=None):
        self.headers = {}
        self.verify = True
        self.calls = []
        self.closed = False
        self._results = list(results or [])

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
        return False

    def close(self):
        self.closed = True

    def request(self, method, url, **kwargs):
        self.calls.append(("request", method, url, kwargs))
        return self._next_result()

    def send(self, prepared, **kwargs):
        self.calls.append(("send", prepared.method, prepared.url, kwargs))
        return self._next_result()

    def _next_result(self):
        result = self._results.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result


class UntrustedCertificateSession(FakeSession):
    """Fails the handshake unless the request itself turns certificate verification off.

    requests merges REQUESTS_CA_BUNDLE over a session-level setting, so only the
    per-request argument counts.
    """

    def request(self, method, url, **kwargs):
        if kwargs.get("verify") is not False:
            raise requests.exceptions.SSLError("certificate verify failed: self-signed certificate")
        return super().request(method, url, **kwargs)


class ScriptedProber(IProber):
    """Prober double returning a fixed outcome per host."""

    def __init__(self, outcomes=None, default=None):
        self.outcomes = outcomes or {}
        self.default = default or NotSupported()
        self.calls = []

    def probe(self, url, timeout_ms, use_get=False):
        self.calls.append((url, timeout_ms, use_get))
        return self.outcomes.get(url.host, self.default)


@pytest.fixture
def session_factory():
    """Returns a factory producing one FakeSession per call, remembering each of them."""
    class Factory:
        def __init__(self):
            self.results = []
            self.sessions = []
            self.session_class = FakeSession

        def __call__(self):
            session = self.session_class(self.results)
            self.sessions.append(session)
            return session

    return Factory()


@pytest.fixture
def closed_port():
    """A local TCP port with nothing listening on it."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


@pytest.fixture
def silent_server():
    """A local TCP port that accepts connections and never answers."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(8)
    yield sock.getsockname()[1]
    sock.close()


@pytest.fixture
def urls_file(tmp_path):
    """Write lines to a temporary text file and return its path."""
    def _write(lines, name="urls.txt"):
        path = tmp_path / name
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return str(path)
    return _write


def write_self_signed_certificate(directory, common_name="wrong.invalid", expired=False):
    """Write a self-signed certificate and its key as PEM files; return both paths."""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.now(timezone.utc)
    not_after = now - timedelta(days=1) if expired else now + timedelta(days=1)

    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=2))
        .not_valid_after(not_after)
        .sign(key, hashes.SHA256())
    )

    cert_path = directory / f"{common_name}.crt"
    key_path = directory / f"{common_name}.key"
    cert_path.write_bytes(certificate.public_bytes(serialization.Encoding.PEM))
    key_path.write_bytes(key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.TraditionalOpenSSL,
        serialization.NoEncryption()
    ))
    return str(cert_path), str(key_path)


class RoutedHandler(BaseHTTPRequestHandler):
    """Answers HEAD and GET from the server's ``routes``: path -> (status, headers)."""

    def do_HEAD(self):
        status, headers = self.server.routes.get(self.path, (404, {}))
        self.send_response(status)
        for name, value in headers.items():
            self.send_header(name, value)
        self.send_header("Content-Length", "0")
        self.end_headers()

    do_GET = do_HEAD

    def log_message(self, format, *args):
        pass


@pytest.fixture
def tls_server(tmp_path):
    """Start local HTTPS servers behind untrusted certificates; returns their ports."""
    servers = []

    def _start(routes, expired=False):
        cert_path, key_path = write_self_signed_certificate(tmp_path, expired=expired)
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        context.load_cert_chain(cert_path, key_path)

        server = ThreadingHTTPServer(("127.0.0.1", 0), RoutedHandler)
        server.daemon_threads = True
        server.routes = routes
        server.socket = context.wrap_socket(server.socket, server_side=True)
        threading.Thread(target=server.serve_forever, daemon=True).start()
        servers.append(server)
        return server.server_address[1]

    yield _start

    for server in servers:
        server.shutdown()
        server.server_close()
