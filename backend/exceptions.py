# booking-backend/exceptions.py


class SchedulingError(Exception):
    """Base class for errors raised by the scheduling services."""


class HostNotFoundError(SchedulingError):
    def __init__(self, slug: str):
        super().__init__(f"No host matches '{slug}'")
        self.slug = slug


class InvalidBookingError(SchedulingError):
    """The requested booking is malformed or outside the host's availability."""


class BookingConflictError(SchedulingError):
    """The requested time overlaps an existing booking."""

