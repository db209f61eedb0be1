#!/usr/bin/env python3
"""
HSTS Probe command line entry point.

    hsts-probe test example.com
    hsts-probe batch sites.txt -t 3000 -f
"""

import argparse
import sys
from typing import List, Optional

from core.config import init_config, APP_NAME, VERSION, OUTPUT_FORMATS, ConfigValidationError
from core.logging_config import setup_logging, get_logger
from core.error_handler import get_error_handler, ErrorContext
from core.exceptions import HSTSProbeException, ValidationError, EmptyBatchError, InputError
from modules.url_normalizer import normalize
from modules.hsts_prober import HSTSProber
from modules.batch_runner import BatchRunner
from modules.reporter import Reporter

EXIT_OK = 0
EXIT_NO_INPUT = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hsts-probe",
        description="Test HTTPS sites for HTTP Strict Transport Security (HSTS) support. "
                    "Certificates are NOT verified."
    )
    parser.add_argument('--config', help='YAML or JSON configuration file')
    parser.add_argument('--log-level', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        type=str.upper, help='Override the configured log level')
    parser.add_argument('--version', action='version', version=f'{APP_NAME} {VERSION}')

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('-t', '--timeout', type=int, default=None,
                        help='Request timeout in ms (default: 5000)')
    common.add_argument('-g', '--get', dest='use_get', action='store_true', default=None,
                        help='Use GET method for tests instead of HEAD')
    common.add_argument('--format', choices=OUTPUT_FORMATS, default=None,
                        help='Report format (default: text)')
    common.add_argument('-o', '--output', help='Write the report to a file instead of stdout')

    subparsers = parser.add_subparsers(dest='command', metavar='COMMAND')
    subparsers.required = True

    test_parser = subparsers.add_parser('test', parents=[common], help='Test single URL')
    test_parser.add_argument('address', help='HTTPS URL to test')
    test_parser.set_defaults(handler=cmd_test)

    batch_parser = subparsers.add_parser('batch', parents=[common], help='Test multiple URLs from file')
    batch_parser.add_argument('file_name', help='Text file containing HTTPS URLs to test, one per line')
    batch_parser.add_argument('-f', '--full-urls', dest='full_urls', action='store_true', default=None,
                              help='Display full URLs instead of host names only')
    batch_parser.set_defaults(handler=cmd_batch)

    return parser


def read_lines(file_name: str) -> List[str]:
    """Read candidate URLs from a text file."""
    try:
        with open(file_name, 'r', encoding='utf-8-sig') as f:
            return f.read().splitlines()
    except (OSError, UnicodeDecodeError) as e:
        reason = getattr(e, 'strerror', None) or str(e)
        raise InputError(f"Cannot read {file_name}: {reason}", path=file_name) from e


class Console:
    """Progress output; silent when a machine readable report goes to stdout."""

    def __init__(self, enabled: bool):
        self.enabled = enabled

    def write(self, text: str = "", end: str = "\n") -> None:
        if self.enabled:
            print(text, end=end, flush=True)


def _resolve_options(args, config):
    timeout = args.timeout if args.timeout is not None else config.probe.timeout_ms
    use_get = args.use_get if args.use_get is not None else config.probe.use_get
    fmt = args.format or config.output.format
    if timeout < 0:
        raise ValidationError(f"Timeout must not be negative: {timeout}", field="timeout")
    return timeout, use_get, fmt


def _publish(report: str, args, reporter: Reporter) -> None:
    if args.output:
        reporter.save_report(report, args.output)
    else:
        print(report)


def cmd_test(args, config) -> int:
    """Test a single URL."""
    address = args.address
    if address is None or not address.strip():
        raise ValidationError("Value cannot be empty or whitespace only string.", field="address")
    timeout, use_get, fmt = _resolve_options(args, config)

    url = normalize(address)
    if url is None:
        raise ValidationError(f"Not a valid URL: {address}", field="address")

    prober = HSTSProber.from_config(config.probe)
    outcome = prober.probe(url, timeout, use_get)

    reporter = Reporter()
    _publish(reporter.render_single(url, outcome, fmt), args, reporter)
    return EXIT_OK


def cmd_batch(args, config) -> int:
    """Test every URL listed in a file."""
    file_name = args.file_name
    if file_name is None or not file_name.strip():
        raise ValidationError("Value cannot be empty or whitespace only string.", field="file_name")
    timeout, use_get, fmt = _resolve_options(args, config)
    full_urls = args.full_urls if args.full_urls is not None else config.output.full_urls
    console = Console(fmt == 'text' and not args.output)

    console.write("Reading URLs from file...", end="")
    try:
        lines = read_lines(file_name)
    except InputError:
        console.write("Failed!")
        raise
    console.write("OK")

    runner = BatchRunner(HSTSProber.from_config(config.probe))
    console.write("Parsing URLs...", end="")
    urls = runner.parse(lines)
    if not urls:
        console.write("Failed!")
        console.write("No valid URLs found in file.")
    else:
        console.write(f"OK, {len(urls)} URLs found.")

    entries = runner.probe_urls(urls, timeout, use_get, full_urls, line_count=len(lines))

    reporter = Reporter()
    _publish(reporter.render_batch(entries, fmt), args, reporter)
    return EXIT_OK


def print_banner() -> None:
    print(f"{APP_NAME} version {VERSION}")
    print("Licensed under terms of MIT license.")
    print()


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = init_config(args.config).config
    except ConfigValidationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_USAGE

    setup_logging(log_level=args.log_level, force=True)
    logger = get_logger("hstsprobe.cli")

    if (args.format or config.output.format) == 'text' and not args.output:
        print_banner()

    try:
        return args.handler(args, config)
    except HSTSProbeException as e:
        context = ErrorContext(component="cli", operation=args.command)
        summary = get_error_handler().handle_error(e, context)
        print(summary['message'], file=sys.stderr)
        if isinstance(e, (EmptyBatchError, InputError)):
            return EXIT_NO_INPUT
        return EXIT_USAGE
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
