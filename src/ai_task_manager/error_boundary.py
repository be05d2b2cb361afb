"""Error boundary for CLI entry points.

Known failures are printed as a single ``Error:`` line on stderr and turned into
exit status 1. Anything else propagates with its traceback.
"""

import functools
import logging
from collections.abc import Callable
from typing import Any

import click

from ai_task_manager.errors import TaskManagerError

logger = logging.getLogger(__name__)


def cli_error_boundary[T: Callable[..., Any]](func: T) -> T:
    """Decorator that catches well-known exceptions and displays clean error messages.

    Catches:
        - TaskManagerError: Installer failures, reported with their error code
        - FileNotFoundError: Missing target or settings file
        - PermissionError: Permission denied errors
        - ValueError: Invalid input or configuration

    Example:
        @click.command()
        @cli_error_boundary
        def my_command():
            ...
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except TaskManagerError as e:
            logger.debug("%s failed with %s", func.__name__, e.code, exc_info=True)
            click.echo(f"Error: {e} [{e.code}]", err=True)
            raise SystemExit(1) from None
        except FileNotFoundError as e:
            click.echo(f"Error: {e}", err=True)
            raise SystemExit(1) from None
        except PermissionError as e:
            click.echo(f"Error: {e}", err=True)
            raise SystemExit(1) from None
        except ValueError as e:
            click.echo(f"Error: {e}", err=True)
            raise SystemExit(1) from None

    return wrapper  # type: ignore[return-value]
