class CalendarAPIError(Exception):
    """Base class for failures surfaced by the calendar API"""


class AuthenticationError(CalendarAPIError):
    """No usable OAuth credential is available"""

    def __init__(self, message: str = "missing tokens; the one-time authorization flow must be completed"):
        super().__init__(message)


class UpstreamError(CalendarAPIError):
    """The Calendar Service or the Authorization Provider failed"""


class ValidationError(CalendarAPIError):
    """A request is missing fields or carries malformed values"""

    def __init__(self, message: str, code: str = "invalid_fields"):
        super().__init__(message)
        self.code = code
