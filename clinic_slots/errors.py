from __future__ import annotations


class ScheduleError(Exception):
    """Base class for slot-management failures."""


class FetchFailure(ScheduleError):
    """The doctor's schedule could not be loaded."""


class PersistFailure(ScheduleError):
    """The backend did not confirm a schedule update."""


class SlotParseError(ScheduleError, ValueError):
    """A date, clock or time-range value is not in the expected format."""


class SlotValidationError(ScheduleError, ValueError):
    """An edited day cannot be persisted as entered."""


class SessionBusyError(ScheduleError):
    """Another save is still in flight for this view."""


class SessionClosedError(ScheduleError):
    """The view was closed; no further operations are accepted."""
