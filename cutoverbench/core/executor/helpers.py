"""
Static helper functions for the operation executor.
"""

import asyncio
import re
from typing import Any, Optional, Sequence

from cutoverbench.core.executor.types import ErrorClass

# Messages that suggest the serving host changed under an open connection.
_TOPOLOGY_MARKERS = (
    "the active sql connection has changed",
    "communications link failure",
    "connection is closed",
    "connection was closed",
    "connection already closed",
    "lost connection to mysql server",
    "mysql server has gone away",
)

_TRANSIENT_MARKERS = (
    "timeout",
    "timed out",
    "connection reset",
    "reset by peer",
    "connection refused",
    "broken pipe",
    "too many connections",
    "can't connect",
    "could not connect",
    "cannot connect",
    "server shutdown",
    "the database system is shutting down",
    "the database system is starting up",
)

_READ_ONLY_MARKERS = ("read-only", "read only", "read_only")

# MySQL client/server error numbers.
_TOPOLOGY_ERRNOS = frozenset({2006, 2013})
_TRANSIENT_ERRNOS = frozenset({1040, 1047, 1053, 1205, 2002, 2003, 2055})
_READ_ONLY_ERRNOS = frozenset({1290, 1836})

# SQLSTATEs (asyncpg exposes these as `sqlstate`).
_TOPOLOGY_SQLSTATES = frozenset({"08S01", "08003"})
_TRANSIENT_SQLSTATES = frozenset({"57P01", "57P02", "57P03", "53300"})
_READ_ONLY_SQLSTATES = frozenset({"25006"})

_SQLSTATE_RE = re.compile(r"\(\s*([0-9A-Z]{5})\s*\)")


def error_errno(exc: BaseException) -> Optional[int]:
    """Return the MySQL error number carried by a driver exception, if any."""
    if isinstance(exc, OSError):
        # OSError.errno is a POSIX errno, not a server code.
        return None
    errno = getattr(exc, "errno", None)
    if isinstance(errno, int):
        return errno
    args = getattr(exc, "args", ())
    if args and isinstance(args[0], int):
        return args[0]
    return None


def error_sqlstate(exc: BaseException) -> Optional[str]:
    """Return the SQLSTATE for an exception, from the attribute or the message."""
    sqlstate = getattr(exc, "sqlstate", None)
    if sqlstate:
        return str(sqlstate).upper()
    m = _SQLSTATE_RE.search(str(exc or ""))
    if m:
        return m.group(1)
    return None


def classify_error(exc: BaseException) -> ErrorClass:
    """
    Map a raw failure to an ErrorClass.

    Pure over the exception's type, message, error number and SQLSTATE: the
    same failure always yields the same class.
    """
    msg_l = str(exc or "").lower()
    errno = error_errno(exc)
    sqlstate = error_sqlstate(exc)

    if any(marker in msg_l for marker in _TOPOLOGY_MARKERS):
        return ErrorClass.TOPOLOGY_SIGNAL
    if errno in _TOPOLOGY_ERRNOS or sqlstate in _TOPOLOGY_SQLSTATES:
        return ErrorClass.TOPOLOGY_SIGNAL

    if isinstance(exc, (TimeoutError, OSError)):
        return ErrorClass.TRANSIENT_CONNECTION
    if errno in _TRANSIENT_ERRNOS or sqlstate in _TRANSIENT_SQLSTATES:
        return ErrorClass.TRANSIENT_CONNECTION
    if sqlstate is not None and sqlstate.startswith("08"):
        return ErrorClass.TRANSIENT_CONNECTION
    if any(marker in msg_l for marker in _TRANSIENT_MARKERS):
        return ErrorClass.TRANSIENT_CONNECTION

    return ErrorClass.TERMINAL


def is_read_only_error(exc: BaseException) -> bool:
    """True when a write was rejected because the server is read-only."""
    errno = error_errno(exc)
    if errno in _READ_ONLY_ERRNOS:
        return True
    if error_sqlstate(exc) in _READ_ONLY_SQLSTATES:
        return True
    msg_l = str(exc or "").lower()
    return any(marker in msg_l for marker in _READ_ONLY_MARKERS)


def error_category(exc: BaseException) -> str:
    """
    Return a stable, low-cardinality category for an execution-time error.

    Failures are aggregated by category for the periodic report rather than
    relying on per-operation log lines.
    """
    if is_read_only_error(exc):
        return "READ_ONLY"

    errno = error_errno(exc)
    if errno is not None:
        return f"MYSQL_{errno}"

    sqlstate = error_sqlstate(exc)
    if sqlstate:
        return f"SQLSTATE_{sqlstate}"

    return type(exc).__name__


def truncate_str_for_log(value: Any, *, max_chars: int = 800) -> str:
    """Truncate a string value for logging."""
    text = str(value if value is not None else "")
    if len(text) > max_chars:
        return text[:max_chars] + "…[truncated]"
    return text


def sql_error_meta_for_log(exc: BaseException, *, max_chars: int = 500) -> dict[str, Any]:
    """
    Extract common SQL error fields across connectors (aiomysql, asyncpg).
    """
    out: dict[str, Any] = {"type": type(exc).__name__}
    errno = error_errno(exc)
    if errno is not None:
        out["errno"] = errno
    for key in ("sqlstate", "detail", "hint"):
        try:
            raw = getattr(exc, key, None)
        except Exception:
            raw = None
        if raw is None:
            continue
        val = str(raw)
        if not val:
            continue
        if len(val) > max_chars:
            val = val[:max_chars] + "…[truncated]"
        out[key] = val
    return out


def format_read_result(row: Sequence[Any], columns: Sequence[str]) -> str:
    """
    Render an introspection row as 'host (col=value, ...)'.

    The first column is the host identity; remaining columns are labelled
    with the given names.
    """
    if not row:
        return ""
    host = str(row[0])
    extras = [
        f"{name}={value}" for name, value in zip(columns[1:], row[1:])
    ]
    if not extras:
        return host
    return f"{host} ({', '.join(extras)})"


def redact_dsn(dsn: str) -> str:
    """Mask password values in a DSN or URL for logging."""
    redacted = re.sub(r"(password=)[^&\s]*", r"\1***", dsn, flags=re.IGNORECASE)
    return re.sub(r"(://[^:/@\s]+:)[^@\s]*(@)", r"\1***\2", redacted)


async def sleep_unless_set(event: Optional[asyncio.Event], seconds: float) -> bool:
    """
    Sleep for `seconds` or until `event` is set.

    Returns True if the event was set (callers should stop), False if the
    full delay elapsed.
    """
    if seconds <= 0:
        return bool(event is not None and event.is_set())
    if event is None:
        await asyncio.sleep(seconds)
        return False
    if event.is_set():
        return True
    try:
        await asyncio.wait_for(event.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        return False
    return True
