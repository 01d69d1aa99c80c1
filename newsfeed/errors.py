# newsfeed/errors.py
"""Error taxonomy shared by the ranking core and the web layer."""


class NewsfeedError(Exception):
    """Base class for errors raised by the feed engine."""


class InvalidRequestError(NewsfeedError):
    """A request was rejected before any scoring work started."""

    def __init__(self, message: str, field: str = ""):
        super().__init__(message)
        self.field = field


class DataUnavailableError(NewsfeedError):
    """The article catalog or interaction store did not answer.

    The engine never retries these; the caller owns retry/backoff.
    """


class NotFoundError(NewsfeedError):
    """A referenced article or user does not exist."""
