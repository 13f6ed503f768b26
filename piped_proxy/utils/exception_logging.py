"""
Helpers for logging upstream failures, including exception groups raised by
task groups while a response is being streamed.
"""

import logging


def _safe_str(obj) -> str:
    """
    Convert an object to string without letting a broken ``__str__`` escape.

    Args:
        obj: The object to convert

    Returns:
        ``str(obj)``, ``repr(obj)``, or a placeholder naming the type
    """
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} object (string conversion failed)>"


def _sub_exceptions(exception) -> list:
    try:
        return list(getattr(exception, "exceptions", None) or [])
    except Exception:
        return []


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: Exception,
    level: int = logging.ERROR,
) -> None:
    """
    Log an exception, and each sub-exception when it is an exception group.
    Never raises, even for exceptions whose string conversion fails.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g. "[Proxy]", "[Thumbnail]")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
    """
    try:
        sub_exceptions = _sub_exceptions(exception)
        if not sub_exceptions:
            logger.log(
                level,
                f"{prefix} {type(exception).__name__}: {_safe_str(exception)}",
                exc_info=exception,
            )
            return

        logger.log(
            level,
            f"{prefix} Exception with {len(sub_exceptions)} sub-exceptions: {_safe_str(exception)}",
        )
        for i, sub_exc in enumerate(sub_exceptions):
            logger.log(
                level,
                f"{prefix} Sub-exception {i + 1}: {type(sub_exc).__name__}: {_safe_str(sub_exc)}",
                exc_info=sub_exc,
            )
    except Exception:
        try:
            logger.log(logging.ERROR, f"{prefix} Exception (logging failed)")
        except Exception:
            pass


def format_exception_message(exception: Exception) -> str:
    """
    Describe an exception in one line, listing sub-exceptions of a group.

    Args:
        exception: The exception to format

    Returns:
        A string safe to place in a response body or span attribute
    """
    if exception is None:
        return "None"
    message = _safe_str(exception) or type(exception).__name__
    sub_exceptions = _sub_exceptions(exception)
    if not sub_exceptions:
        return message
    joined = "; ".join(
        f"{type(sub_exc).__name__}: {_safe_str(sub_exc)}" for sub_exc in sub_exceptions
    )
    return f"{message} (Sub-exceptions: {joined})"
