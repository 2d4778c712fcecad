"""Process liveness probe."""

from __future__ import annotations

import logging
import os

logger = logging.getLogger(__name__)


def is_process_alive(pid: int) -> bool:
    """Return True if a process with ``pid`` exists, using a zero signal.

    A permission error (the process belongs to another user) is reported
    as not alive.
    """

    if pid <= 0:
        # 0 and negative pids address process groups
        return False
    try:
        os.kill(pid, 0)
    except PermissionError:
        logger.debug("Liveness probe denied", extra={"pid": pid})
        return False
    except (OSError, OverflowError):
        return False
    return True


__all__ = ["is_process_alive"]
