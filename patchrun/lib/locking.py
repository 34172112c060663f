"""
Run lock for patchrun.

Uses flock so that two mutating runs against the same plan never interleave
git operations on the same checkouts.
"""

import atexit
import fcntl
import os
import signal
import sys
import time
from contextlib import contextmanager
from pathlib import Path

LOCK_FILENAME = ".patchrun.lock"


class LockTimeout(Exception):
    """Lock acquisition timed out."""
    pass


@contextmanager
def _acquire_lock(lock_file: Path, timeout: int, lock_name: str):
    """
    Internal helper to acquire a file lock.

    Args:
        lock_file: Path to the lock file
        timeout: Seconds to wait for lock
        lock_name: Human-readable name for error messages
    """
    lock_file.parent.mkdir(parents=True, exist_ok=True)

    fd = open(lock_file, 'w')
    start = time.time()

    while True:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            break
        except BlockingIOError:
            if time.time() - start >= timeout:
                fd.close()
                raise LockTimeout(f"Could not acquire {lock_name} within {timeout}s")
            time.sleep(1)

    def cleanup():
        try:
            fcntl.flock(fd, fcntl.LOCK_UN)
            fd.close()
        except (OSError, ValueError):
            pass

    atexit.register(cleanup)
    original_sigterm = signal.signal(signal.SIGTERM, lambda *_: sys.exit(1))

    try:
        fd.write(f"{os.getpid()}\n")
        fd.flush()
        yield
    finally:
        atexit.unregister(cleanup)
        signal.signal(signal.SIGTERM, original_sigterm)
        cleanup()


@contextmanager
def run_lock(plan_dir: Path, timeout: int = 5):
    """
    Acquire the plan-wide run lock, yield, release on exit.

    Lock files are never deleted; deleting would let two processes hold
    "exclusive" locks on different inodes with the same path.
    """
    lock_file = plan_dir / LOCK_FILENAME
    with _acquire_lock(lock_file, timeout, f"run lock {lock_file}"):
        yield
