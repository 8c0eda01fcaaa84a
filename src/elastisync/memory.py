"""
Elastisync Memory — Process Memory Limit While Indexing
=======================================================

Building documents for large records (attachments in particular) can need
more address space than a constrained worker process allows. The sync
service raises the soft limit once, before its first index operation.
"""

import logging
import re
import sys
from typing import Optional

logger = logging.getLogger(__name__)

UNLIMITED = "unlimited"

_UNITS = {"": 1, "K": 1024, "M": 1024 ** 2, "G": 1024 ** 3, "T": 1024 ** 4}
_SIZE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([KMGT]?)B?\s*$", re.IGNORECASE)


def parse_size(size: str) -> int:
    """
    Parse a memory size string into bytes.

    Args:
        size: e.g. "512M", "2G", "1048576"

    Returns:
        Size in bytes
    """
    match = _SIZE.match(str(size))
    if not match:
        raise ValueError(f"Invalid memory size: {size!r}")
    number, unit = match.groups()
    return int(float(number) * _UNITS[unit.upper()])


def increase_memory_limit_to(limit: Optional[str] = None) -> bool:
    """
    Raise the soft address-space limit, never lowering it.

    Args:
        limit: Size string, or None / "unlimited" for as much as allowed

    Returns:
        True if the limit was changed
    """
    if sys.platform == "win32":
        logger.debug("Memory limits are not adjustable on Windows")
        return False

    import resource

    soft, hard = resource.getrlimit(resource.RLIMIT_AS)
    if limit is None or str(limit).lower() == UNLIMITED:
        target = resource.RLIM_INFINITY
    else:
        target = parse_size(limit)

    # Cannot go past the hard limit without privileges
    if hard != resource.RLIM_INFINITY and (target == resource.RLIM_INFINITY or target > hard):
        target = hard

    if soft == resource.RLIM_INFINITY:
        return False
    if target != resource.RLIM_INFINITY and target <= soft:
        return False

    resource.setrlimit(resource.RLIMIT_AS, (target, hard))
    logger.info("Raised memory limit from %s to %s bytes", soft, target)
    return True
