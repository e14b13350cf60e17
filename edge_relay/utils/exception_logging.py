"""
Exception logging helpers shared by the router, the relay and the API delegate.

None of these functions raise: they are called from error paths, where a second
failure would hide the first one.
"""

import logging

UNKNOWN_ERROR_MESSAGE = "Unknown error occurred"


def _safe_str(obj) -> str:
    """
    Convert an object to string, falling back to repr and finally to the type name
    when ``__str__`` itself is broken.
    """
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} object (string conversion failed)>"


def _safe_get_exceptions(exception_group) -> list:
    try:
        return list(exception_group.exceptions)
    except Exception:
        return []


def error_message(exception, default: str = UNKNOWN_ERROR_MESSAGE) -> str:
    """Message to show to a caller: the exception text, or ``default`` when empty."""
    if exception is None:
        return default
    message = _safe_str(exception)
    return message if message.strip() else default


def find_exception_in_exception_groups(exception: Exception, target_type: type):
    """
    Return the first exception of ``target_type`` found in ``exception`` or in the
    sub-exceptions of an exception group, or None.
    """
    try:
        if isinstance(exception, target_type):
            return exception
        if hasattr(exception, "exceptions"):
            for sub_exc in _safe_get_exceptions(exception):
                inner_exc = find_exception_in_exception_groups(sub_exc, target_type)
                if inner_exc is not None:
                    return inner_exc
        return None
    except Exception:
        return None


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: Exception,
    level: int = logging.ERROR,
) -> None:
    """
    Log an exception with its traceback. Exception groups (TaskGroup failures) are
    logged once for the group and once per sub-exception.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g., "[Relay]", "[API]")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
    """
    try:
        safe_prefix = _safe_str(prefix) if prefix is not None else ""
        if exception is None:
            logger.log(level, f"{safe_prefix} Exception: None")
            return

        sub_exceptions = (
            _safe_get_exceptions(exception) if hasattr(exception, "exceptions") else []
        )
        if not sub_exceptions:
            logger.log(
                level,
                f"{safe_prefix} Exception: {_safe_str(exception)}",
                exc_info=exception,
            )
            return

        logger.log(
            level,
            f"{safe_prefix} Exception with {len(sub_exceptions)} sub-exceptions: "
            f"{_safe_str(exception)}",
        )
        for i, sub_exc in enumerate(sub_exceptions):
            logger.log(
                level,
                f"{safe_prefix} Sub-exception {i+1}: "
                f"{type(sub_exc).__name__}: {_safe_str(sub_exc)}",
                exc_info=sub_exc,
            )
    except Exception:
        try:
            logger.log(logging.ERROR, f"{prefix} Exception logging failed")
        except Exception:
            pass


def format_exception_message(exception: Exception) -> str:
    """
    One-line description of an exception, including the sub-exceptions of an
    exception group.
    """
    try:
        if exception is None:
            return "None"
        sub_exceptions = (
            _safe_get_exceptions(exception) if hasattr(exception, "exceptions") else []
        )
        if not sub_exceptions:
            return _safe_str(exception)
        details = "; ".join(
            f"{type(sub_exc).__name__}: {_safe_str(sub_exc)}"
            for sub_exc in sub_exceptions
        )
        return f"{_safe_str(exception)} (Sub-exceptions: {details})"
    except Exception:
        return f"<{type(exception).__name__} (formatting failed)>"
