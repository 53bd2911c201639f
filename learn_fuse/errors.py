"""Errors raised by the learning web service client."""


class LearnError(Exception):
    """Base class for remote service failures."""


class AuthError(LearnError):
    """Login was rejected."""


class RemoteError(LearnError):
    """A request failed or the service reported failure."""


class ParseError(LearnError):
    """A response did not have the expected shape."""
