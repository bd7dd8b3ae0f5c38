"""
Small shared helpers: wall-clock timestamps, id suffixes and path handling.
"""

import secrets
import time


def now_ms() -> int:
    """Current Unix time in integer milliseconds."""
    return int(time.time() * 1000)


def random_suffix(length: int = 4) -> str:
    """Short random hex string used to disambiguate ids minted in the same ms."""
    return secrets.token_hex((length + 1) // 2)[:length]


def project_name(cwd: str) -> str:
    """Final path segment of ``cwd``, or ``"unknown"`` when there is none."""
    segment = cwd.rstrip("/").rsplit("/", 1)[-1] if cwd else ""
    return segment or "unknown"
