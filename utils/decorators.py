"""
Command decorators for error handling, logging, and result formatting.
"""
import functools
import time
import uuid
from typing import Callable, Any, Dict
from logger_config import get_logger
from utils.exceptions import ValidationError

logger = get_logger(__name__)


def _as_result(value: Any) -> Dict[str, Any]:
    if isinstance(value, dict):
        return value
    if isinstance(value, (list, str)):
        return {"result": value}
    return {"data": value}


def _error_result(error_type: str, error: Exception, correlation_id: str, command: str) -> Dict[str, Any]:
    return {
        "error": {
            "type": error_type,
            "message": str(error),
            "correlation_id": correlation_id,
        },
        "metadata": {"correlation_id": correlation_id, "command": command},
    }


def operator_command(
    func: Callable[..., Any]
) -> Callable[..., Dict[str, Any]]:
    """
    Decorator for operator command functions.

    The wrapped command always returns a dictionary: its own result (wrapped
    when it is not a dict) with ``metadata.correlation_id`` and
    ``metadata.command`` added, or an ``error`` entry describing the failure.
    ``ValueError`` and ``ValidationError`` are reported as ``ValidationError``;
    any other exception keeps its class name and is logged with a traceback.

    Args:
        func: The command function to decorate

    Returns:
        Decorated command function returning a dictionary
    """
    command = func.__name__

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Dict[str, Any]:
        correlation_id = str(uuid.uuid4())
        log_extra = {"correlation_id": correlation_id, "command": command}
        started = time.monotonic()
        logger.info(f"Command {command} started", extra=log_extra)

        try:
            result = _as_result(func(*args, **kwargs))
        except (ValueError, ValidationError) as e:
            logger.warning(f"Command {command} rejected its input: {str(e)}", extra=log_extra)
            return _error_result("ValidationError", e, correlation_id, command)
        except Exception as e:
            logger.error(f"Command {command} failed: {str(e)}", extra=log_extra, exc_info=True)
            return _error_result(type(e).__name__, e, correlation_id, command)

        result.setdefault("metadata", {}).update(log_extra)
        logger.info(
            f"Command {command} completed in {time.monotonic() - started:.2f}s",
            extra=log_extra,
        )
        return result

    return wrapper
