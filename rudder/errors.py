from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from rudder.models.event import ValidationFailure


class RudderError(Exception):
    """Base class for every error raised by the tracking layer."""


class ConfigError(RudderError):
    """Initialization was attempted with an unusable configuration."""


class AlreadyInitializedError(ConfigError):
    pass


class NotInitializedError(RudderError):
    pass


class ValidationError(RudderError):
    """An event is missing a field its operation requires."""

    def __init__(self, failure: "ValidationFailure") -> None:
        super().__init__(failure.message)
        self.failure = failure
