"""
Launcher Example

This example demonstrates how to use the launcher to:
1. Run a closure in a fresh worker process and get its value back
2. Override the worker environment and relay its console output
3. Handle a task that raises inside the worker
4. Cancel a long-running launch
"""

import logging
import os
import time

import vmlauncher
from vmlauncher import TaskError, VmCancelledError


def main() -> None:
    """Main execution function."""
    logging.basicConfig(level=logging.INFO)
    print("=" * 60)
    print("Launcher Example")
    print("=" * 60)

    base = 40

    def compute() -> dict[str, int]:
        print(f"  computing in PID {os.getpid()}")
        return {"answer": base + 2, "pid": os.getpid()}

    launcher = (
        vmlauncher.new_vm()
        .set_callable(compute)
        .set_environment("EXAMPLE_MODE", "demo")
        .set_console(lambda line: print(f"[worker] {line}"))
        .build()
    )

    # 1. Blocking launch
    print("\n1. Running closure in a worker...")
    result = launcher.start_and_get(timeout=60)
    print(f"  result: {result} (host PID {os.getpid()})")

    # 2. Per-launch task overriding the default
    print("\n2. Reading the worker environment...")
    mode = launcher.start_and_get(lambda: os.environ["EXAMPLE_MODE"], timeout=60)
    print(f"  EXAMPLE_MODE in worker: {mode}")

    # 3. Failure inside the task
    print("\n3. Task raising inside the worker...")

    def fail() -> None:
        raise ValueError("bad input")

    try:
        launcher.start_and_get(fail, timeout=60)
    except TaskError as error:
        print(f"  caught: {error}")
        print(f"  original: {error.__cause__!r}")

    # 4. Cancellation
    print("\n4. Cancelling a long-running launch...")
    future = launcher.start_async(lambda: time.sleep(60))
    print(f"  worker PID: {future.pid}, status: {future.status}")
    future.cancel()
    try:
        future.get()
    except VmCancelledError:
        print(f"  status after cancel: {future.status}")

    print("\n" + "=" * 60)
    print("Example completed successfully!")
    print("=" * 60)


if __name__ == "__main__":
    main()
