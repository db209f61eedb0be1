"""
Batch runner - applies the HSTS probe to a list of candidate URLs.

Lines are normalized first; lines that are not URLs are skipped. The remaining
URLs are probed one at a time, in input order, and every probe produces its own
entry so one failing host never stops the rest of the batch.
"""

import logging
import time
from collections import Counter
from typing import Iterable, List, Optional, Sequence

from core.exceptions import EmptyBatchError, ValidationError
from core.interfaces import (
    BatchEntry, IProber, IUrlNormalizer, NormalizedUrl, OutcomeStatus
)
from core.logging_config import PerformanceLogger
from modules.url_normalizer import UrlNormalizer

logger = logging.getLogger("hstsprobe.batch")


class BatchRunner:
    """Runs the normalize -> probe pipeline over many lines."""

    def __init__(self, prober: IProber, normalizer: Optional[IUrlNormalizer] = None):
        self.prober = prober
        self.normalizer = normalizer or UrlNormalizer()
        self.performance_logger = PerformanceLogger()

    def parse(self, lines: Iterable[str]) -> List[NormalizedUrl]:
        """Normalize every line, dropping those that are not URLs."""
        urls = []
        for number, line in enumerate(lines, start=1):
            url = self.normalizer.normalize(line)
            if url is None:
                if line is not None and line.strip():
                    logger.debug("Skipping line %d, not a URL: %r", number, line)
                continue
            urls.append(url)
        return urls

    def run(self, lines: Sequence[str], timeout_ms: int, use_get: bool = False,
            full_urls: bool = False) -> List[BatchEntry]:
        """
        Probe every URL found in ``lines``.

        Args:
            lines: raw candidate strings, e.g. the lines of a text file
            timeout_ms: per-probe timeout in milliseconds, must be >= 0
            use_get: probe with GET instead of HEAD
            full_urls: label entries with the full URL instead of the host

        Returns:
            One BatchEntry per normalizable line, in input order

        Raises:
            ValidationError: negative timeout
            EmptyBatchError: no line could be normalized
        """
        lines = list(lines)
        return self.probe_urls(self.parse(lines), timeout_ms, use_get, full_urls, len(lines))

    def probe_urls(self, urls: Sequence[NormalizedUrl], timeout_ms: int, use_get: bool = False,
                   full_urls: bool = False, line_count: Optional[int] = None) -> List[BatchEntry]:
        """Probe already parsed URLs; ``line_count`` is the size of the input they came from."""
        if timeout_ms is None or timeout_ms < 0:
            raise ValidationError(f"Timeout must not be negative: {timeout_ms}", field="timeout_ms")

        if line_count is None:
            line_count = len(urls)
        if not urls:
            if not line_count:
                raise EmptyBatchError("No lines given.", line_count=0)
            raise EmptyBatchError("No valid URLs found.", line_count=line_count)

        logger.info("Probing %d URLs (%d lines)", len(urls), line_count)
        started = time.monotonic()

        entries = []
        for url in urls:
            label = url.url if full_urls else url.host
            outcome = self.prober.probe(url, timeout_ms, use_get)
            entries.append(BatchEntry(label=label, url=url, outcome=outcome))

        counts = Counter(entry.outcome.status.value for entry in entries)
        for status in OutcomeStatus:
            counts.setdefault(status.value, 0)
        self.performance_logger.log_batch_performance(
            time.monotonic() - started, line_count, len(urls), counts
        )
        return entries


def run_batch(lines: Sequence[str], timeout_ms: int, use_get: bool, full_urls: bool,
              prober: IProber) -> List[BatchEntry]:
    """Functional shortcut for ``BatchRunner(prober).run(...)``."""
    return BatchRunner(prober).run(lines, timeout_ms, use_get, full_urls)
