"""Per-command failure types raised by the editor.

None of these are process-fatal: a batch run logs them and continues with the
next command. Each carries the ids needed to locate the problem.
"""

from __future__ import annotations

from typing import Any


class ScheduleEditError(Exception):
    """Base class for edit failures. `context` holds line/route/link/facility ids."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, str] = {k: str(v) for k, v in context.items() if v is not None}

    def __str__(self) -> str:
        if not self.context:
            return self.message
        ctx = ", ".join(f"{k}={v}" for k, v in sorted(self.context.items()))
        return f"{self.message} ({ctx})"


class NotFound(ScheduleEditError, LookupError):
    """Unknown line, route, facility or link id."""


class MissingFacility(NotFound):
    """A child stop facility for a (parent, link) pair is not registered."""


class InvalidOperation(ScheduleEditError, ValueError):
    """Operation misused, e.g. rerouting through a stop's reference link."""


class RouteUnreachable(ScheduleEditError):
    """The router found no path for a required segment."""


class UnboundStop(ScheduleEditError, ValueError):
    """A stop facility has no governing link."""


class OutOfRange(ScheduleEditError, IndexError):
    """A stop has no successor in its route."""
