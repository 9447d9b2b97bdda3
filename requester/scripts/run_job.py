"""
Job Runner.

Run a single request job from the command line and print its event log as
it is written.

Usage:
    python -m requester.scripts.run_job GET https://example.org --retries 2 --timeout 5
    python -m requester.scripts.run_job POST https://example.org -H Content-Type=application/json -d '{"a": 1}'
    python -m requester.scripts.run_job GET https://example.org --simulate

Ctrl+C aborts the run (the abort is recorded in the log).
"""

import argparse
import asyncio
import signal
import sys
from typing import List, Optional

from requester.config import settings
from requester.domain.models import Header, METHODS, RequestJob
from requester.exceptions import ConfigurationError
from requester.execution.engine import ExecutionController
from requester.state.models import LogEntry
from requester.transport.adapters.httpx_adapter import HttpxTransport
from requester.transport.adapters.simulated import SimulatedTransport


def _parse_header(raw: str) -> Header:
    key, _, value = raw.partition("=")
    return Header(key=key.strip(), value=value.strip())


def _print_entry(entry: LogEntry) -> None:
    print(f"[{entry.timestamp:%H:%M:%S}] {entry.severity.value:<7} {entry.message}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="run_job", description="Fire one HTTP request job")
    parser.add_argument("method", type=str.upper, choices=METHODS)
    parser.add_argument("url")
    parser.add_argument("-H", "--header", action="append", default=[], help="KEY=VALUE, repeatable")
    parser.add_argument("-d", "--data", dest="body", default=None, help="Request body")
    parser.add_argument("--retries", type=int, default=None, help="Enable retries with this budget")
    parser.add_argument("--timeout", type=float, default=settings.DEFAULT_TIMEOUT_SECONDS)
    parser.add_argument("--delay", type=float, default=settings.DEFAULT_DELAY_SECONDS)
    parser.add_argument("--no-store", action="store_true", help="Do not persist the payload")
    parser.add_argument("--simulate", action="store_true", help="Use the simulated transport")
    return parser


async def run(args: argparse.Namespace) -> int:
    job = RequestJob(
        method=args.method,
        url=args.url,
        headers=tuple(_parse_header(h) for h in args.header),
        body=args.body,
        retry_enabled=args.retries is not None,
        max_retries=args.retries if args.retries is not None else settings.DEFAULT_MAX_RETRIES,
        timeout_seconds=args.timeout,
        delay_seconds=args.delay,
        logging_enabled=not args.no_store,
    )

    if args.simulate:
        transport = SimulatedTransport(
            success_probability=settings.SIMULATION_SUCCESS_PROBABILITY,
            latency_seconds=settings.SIMULATION_LATENCY_SECONDS,
        )
    else:
        transport = HttpxTransport()

    controller = ExecutionController(transport=transport)
    controller.subscribe(_print_entry)

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, controller.abort)
    except NotImplementedError:
        # Signal handlers are not available on every event loop (e.g. Windows)
        pass

    try:
        outcome = await controller.run(job)
    finally:
        if isinstance(transport, HttpxTransport):
            await transport.aclose()

    return 0 if outcome.succeeded else 1


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    try:
        code = asyncio.run(run(args))
    except ConfigurationError as e:
        print(f"Invalid job: {e}", file=sys.stderr)
        sys.exit(2)
    sys.exit(code)


if __name__ == "__main__":
    main()
