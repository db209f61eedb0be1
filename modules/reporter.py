from typing import Dict, Sequence
import json
from datetime import datetime, timezone

from core.interfaces import (
    IReporter, BatchEntry, NormalizedUrl, ProbeOutcome, OutcomeStatus
)


class Reporter(IReporter):
    """Renders probe outcomes as console text or JSON."""

    FORMATS = ('text', 'json')

    def render_single(self, url: NormalizedUrl, outcome: ProbeOutcome, fmt: str = 'text') -> str:
        """Render the outcome of a single probe."""
        if fmt == 'text':
            return self._single_text(url, outcome)
        elif fmt == 'json':
            data = {'url': url.url}
            data.update(outcome.to_dict())
            return json.dumps(data, indent=2)
        else:
            raise ValueError(f"Unsupported report format: {fmt}")

    def render_batch(self, entries: Sequence[BatchEntry], fmt: str = 'text') -> str:
        """Render the outcomes of a batch, one entry per probed URL."""
        if fmt == 'text':
            return "\n".join(self._batch_line(entry) for entry in entries)
        elif fmt == 'json':
            return json.dumps({
                'generated_at': datetime.now(timezone.utc).isoformat(),
                'summary': self.summarize(entries),
                'results': [entry.to_dict() for entry in entries]
            }, indent=2)
        else:
            raise ValueError(f"Unsupported report format: {fmt}")

    def summarize(self, entries: Sequence[BatchEntry]) -> Dict[str, int]:
        """Count outcomes per status."""
        summary = {'total': len(entries)}
        for status in OutcomeStatus:
            summary[status.value] = 0
        for entry in entries:
            summary[entry.outcome.status.value] += 1
        return summary

    def _single_text(self, url: NormalizedUrl, outcome: ProbeOutcome) -> str:
        lines = [f"Testing {url.url}..."]
        if outcome.status is OutcomeStatus.SUPPORTED:
            lines[0] += "OK"
            lines.append(f"STS header: {outcome.message}")
        elif outcome.status is OutcomeStatus.NOT_SUPPORTED:
            lines[0] += "No HSTS"
        else:
            lines[0] += "Error"
            lines.append(f"Error message: {outcome.message}")
        return "\n".join(lines)

    def _batch_line(self, entry: BatchEntry) -> str:
        outcome = entry.outcome
        if outcome.status is OutcomeStatus.SUPPORTED:
            return f"{entry.label}\tyes\t{outcome.message}"
        elif outcome.status is OutcomeStatus.NOT_SUPPORTED:
            return f"{entry.label}\tno"
        return f"{entry.label}\terror\t{outcome.message}"

    def save_report(self, report_content: str, file_path: str) -> None:
        """Save a rendered report to a file."""
        with open(file_path, 'w', encoding='utf-8') as f:
            f.write(report_content)
            if not report_content.endswith("\n"):
                f.write("\n")
