"""Worker entry point: ``python -m vmlauncher.bootstrap [options] <port>``.

Connects back to the host on the loopback interface, receives one task
envelope, runs the task and sends one result envelope. Nothing else is ever
sent over the connection; anything the task prints goes to the process's
standard streams, which the host relays to its console sinks.
"""

from __future__ import annotations

import argparse
import logging
import os
import socket
import sys
from collections.abc import Sequence

from vmlauncher.errors import LaunchError
from vmlauncher.transport.domain.channel_port import ChannelPort
from vmlauncher.transport.domain.result_envelope import ResultEnvelope
from vmlauncher.transport.domain.task_envelope import TaskEnvelope
from vmlauncher.transport.infrastructure.framed_channel import FramedChannel
from vmlauncher.transport.utils.ports import validate_loopback_host, validate_port

try:
    import resource
except ImportError:  # not available on Windows
    resource = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)

LOG_LEVEL_VARIABLE = "VMLAUNCHER_WORKER_LOG_LEVEL"
EXIT_USAGE = 2
EXIT_SETUP_FAILED = 3


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m vmlauncher.bootstrap",
        description="Run one task sent by a vmlauncher host.",
    )
    parser.add_argument("port", help="loopback port the host listens on")
    parser.add_argument(
        "--path", default="", help=f"import path entries joined by {os.pathsep!r}"
    )
    parser.add_argument("--heap-min", type=int, default=None, help="minimum address space (bytes)")
    parser.add_argument("--heap-max", type=int, default=None, help="maximum address space (bytes)")
    parser.add_argument("--host", default="127.0.0.1", help="loopback address to connect to")
    return parser


def extend_import_path(path: str) -> list[str]:
    """
    Put the host-supplied entries in front of ``sys.path``, keeping their order.

    Returns:
        The entries that were added
    """
    entries = [entry for entry in path.split(os.pathsep) if entry]
    added = [entry for entry in entries if entry not in sys.path]
    sys.path[:0] = added
    return added


def apply_heap_limits(heap_min: int | None, heap_max: int | None) -> None:
    """
    Cap the worker's address space at ``heap_max``.

    Raises:
        LaunchError: If the resulting limit is below ``heap_min``
    """
    if heap_min is None and heap_max is None:
        return
    if resource is None:
        logger.warning("Heap limits are not supported on this platform; ignoring them")
        return

    soft, hard = resource.getrlimit(resource.RLIMIT_AS)
    if heap_max is not None:
        if hard != resource.RLIM_INFINITY:
            heap_max = min(heap_max, hard)
        resource.setrlimit(resource.RLIMIT_AS, (heap_max, hard))
        soft = heap_max
        logger.debug("Address space limited to %s bytes", heap_max)

    if heap_min is not None and soft != resource.RLIM_INFINITY and soft < heap_min:
        raise LaunchError(f"address space limit {soft} is below the requested minimum {heap_min}")


def run_worker(channel: ChannelPort) -> ResultEnvelope:
    """
    Receive one task, run it and send back its result.

    Task failures and results that cannot be encoded are reported in-band as
    failure envelopes. ``SystemExit`` and other non-``Exception`` errors
    propagate, so the process ends without a result and the host sees a crash.

    Args:
        channel: Connected channel to the host

    Returns:
        The envelope that was sent
    """
    try:
        envelope = ResultEnvelope.success(_run_task(channel.receive()))
    except Exception as error:
        logger.debug("Task failed: %s", error)
        envelope = ResultEnvelope.failure(error)

    try:
        payload = envelope.encode()
    except Exception as error:
        logger.warning("Could not encode result: %s", error)
        envelope = ResultEnvelope.failure(error)
        payload = envelope.encode()

    channel.send(payload)
    return envelope


def _run_task(payload: bytes) -> object:
    task = TaskEnvelope.decode(payload).load_task()
    return task()


def main(argv: Sequence[str] | None = None) -> int:
    logging.basicConfig(
        stream=sys.stderr,
        level=os.environ.get(LOG_LEVEL_VARIABLE, "WARNING").upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    args = build_parser().parse_args(argv)

    try:
        port = validate_port(args.port)
        host = validate_loopback_host(args.host)
    except LaunchError as error:
        print(error, file=sys.stderr)
        return EXIT_USAGE

    extend_import_path(args.path)
    try:
        apply_heap_limits(args.heap_min, args.heap_max)
    except (LaunchError, ValueError, OSError) as error:
        logger.error("Cannot apply heap limits: %s", error)
        return EXIT_SETUP_FAILED

    try:
        connection = socket.create_connection((host, port))
    except OSError as error:
        logger.error("Cannot connect to host at %s:%s: %s", host, port, error)
        return EXIT_SETUP_FAILED

    with FramedChannel(connection) as channel:
        run_worker(channel)
    return 0


if __name__ == "__main__":
    sys.exit(main())
