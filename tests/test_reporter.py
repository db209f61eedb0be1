"""
Tests for report rendering.
"""

import json

import pytest

from core.interfaces import BatchEntry, Supported, NotSupported, Failed
from modules.reporter import Reporter
from modules.url_normalizer import normalize


URL = normalize("https://example.com/")


def entry(host, outcome):
    url = normalize(host)
    return BatchEntry(label=url.host, url=url, outcome=outcome)


@pytest.fixture
def entries():
    return [
        entry("a.example", Supported("max-age=31536000; includeSubDomains")),
        entry("b.example", NotSupported()),
        entry("c.example", Failed("Timed out: read timed out")),
    ]


class TestSingleReport:
    """Output of the single URL test."""

    def test_supported_text(self):
        text = Reporter().render_single(URL, Supported("max-age=31536000"))

        assert text == "Testing https://example.com/...OK\nSTS header: max-age=31536000"

    def test_not_supported_text(self):
        assert Reporter().render_single(URL, NotSupported()) == "Testing https://example.com/...No HSTS"

    def test_failed_text(self):
        text = Reporter().render_single(URL, Failed("Connection failed: refused"))

        assert text.splitlines() == [
            "Testing https://example.com/...Error",
            "Error message: Connection failed: refused",
        ]

    def test_json(self):
        data = json.loads(Reporter().render_single(URL, Supported("max-age=1"), "json"))

        assert data == {
            "url": "https://example.com/",
            "status": "supported",
            "success": True,
            "message": "max-age=1",
        }

    def test_unknown_format(self):
        with pytest.raises(ValueError, match="Unsupported report format"):
            Reporter().render_single(URL, NotSupported(), "xml")


class TestBatchReport:
    """Output of the batch test."""

    def test_text_lines(self, entries):
        text = Reporter().render_batch(entries)

        assert text.splitlines() == [
            "a.example\tyes\tmax-age=31536000; includeSubDomains",
            "b.example\tno",
            "c.example\terror\tTimed out: read timed out",
        ]

    def test_json(self, entries):
        data = json.loads(Reporter().render_batch(entries, "json"))

        assert "generated_at" in data
        assert data["summary"] == {"total": 3, "supported": 1, "not_supported": 1, "failed": 1}
        assert [r["label"] for r in data["results"]] == ["a.example", "b.example", "c.example"]
        assert data["results"][2] == {
            "label": "c.example",
            "url": "https://c.example/",
            "status": "failed",
            "success": False,
            "message": "Timed out: read timed out",
        }

    def test_summarize_empty(self):
        assert Reporter().summarize([]) == {"total": 0, "supported": 0, "not_supported": 0, "failed": 0}

    def test_unknown_format(self, entries):
        with pytest.raises(ValueError):
            Reporter().render_batch(entries, "csv")

    def test_save_report(self, entries, tmp_path):
        reporter = Reporter()
        path = tmp_path / "report.txt"

        reporter.save_report(reporter.render_batch(entries), str(path))

        content = path.read_text(encoding="utf-8")
        assert content.endswith("\n")
        assert content.splitlines()[1] == "b.example\tno"
