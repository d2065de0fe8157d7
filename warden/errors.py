"""Fault types and the operator-facing capture path."""

from typing import Callable, Optional

from loguru import logger

Reporter = Callable[[BaseException, str], None]

_reporter: Optional[Reporter] = None


class WardenError(Exception):
    """Base class for every fault raised by Warden."""


class DataAccessFault(WardenError):
    """The infraction store could not be reached or a query failed."""


class RemoteActionFault(WardenError):
    """A platform enforcement action was rejected or failed."""

    def __init__(self, action: str, subject_id: int, message: str = ""):
        self.action = action
        self.subject_id = subject_id
        super().__init__(f"Failed to {action} {subject_id}" + (f": {message}" if message else ""))


class NotificationFault(WardenError):
    """A notice could not be delivered."""


class ValidationFault(WardenError):
    """Input was rejected before any side effect took place."""


class UnexpectedStateFault(WardenError):
    """Something happened that the code has no handling for."""


def set_reporter(reporter: Optional[Reporter]) -> None:
    """Registers the callable that forwards captured faults to operators.

    The reporter is called synchronously; it must not block. Pass `None` to
    remove it.
    """
    global _reporter  # pylint: disable=global-statement
    _reporter = reporter


def capture(error: BaseException, component: str) -> None:
    """Logs `error` tagged with `component` and forwards it to the reporter.

    This never raises. Faults in queued work end here since nothing is
    waiting on them.
    """
    logger.bind(component=component).opt(exception=error).error(
        f"{component}: captured {error.__class__.__name__}: {error}"
    )

    if _reporter is None:
        return

    try:
        _reporter(error, component)
    except Exception:  # pylint: disable=broad-except
        logger.exception(f"Operator reporter failed while reporting a fault from {component}")
