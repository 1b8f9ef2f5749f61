from typing import Any, Callable, Dict, Mapping, Optional, Protocol

from rudder.errors import NotInitializedError, ValidationError
from rudder.models.config import Configuration
from rudder.models.event import EventKind, ValidationFailure, validate_event


NOT_INITIALIZED_MESSAGE = "initialize() must be called before any other tracking method."


class DeliveryClientProtocol(Protocol):
    """What the dispatcher needs from whatever actually sends events.

    Each event method reports whether the event was accepted for sending,
    not whether it reached the data plane.
    """

    def track(self, event: Dict[str, Any]) -> bool: ...

    def identify(self, event: Dict[str, Any]) -> bool: ...

    def group(self, event: Dict[str, Any]) -> bool: ...

    def page(self, event: Dict[str, Any]) -> bool: ...

    def screen(self, event: Dict[str, Any]) -> bool: ...

    def alias(self, event: Dict[str, Any]) -> bool: ...

    def flush(self) -> bool: ...


ClientFactory = Callable[[str, str, str, Dict[str, Any]], DeliveryClientProtocol]


class Dispatcher:
    """Validates events and hands them to a delivery client.

    The dispatcher owns its configuration and the client built from it.
    Validation failures raise ``ValidationError`` before the client is
    touched; the client's boolean result is returned as is.
    """

    def __init__(self, config: Configuration, client_factory: ClientFactory) -> None:
        self.config = config
        self._client: Optional[DeliveryClientProtocol] = client_factory(
            config.secret_key,
            config.data_plane_url,
            config.protocol,
            dict(config.options),
        )

    def _require_client(self) -> DeliveryClientProtocol:
        if self._client is None:
            raise NotInitializedError(NOT_INITIALIZED_MESSAGE)
        return self._client

    @property
    def initialized(self) -> bool:
        return self._client is not None

    @staticmethod
    def validate(kind: EventKind, event: Any) -> Optional[ValidationFailure]:
        return validate_event(kind, event)

    def _dispatch(self, kind: EventKind, event: Any) -> bool:
        client = self._require_client()
        failure = validate_event(kind, event)
        if failure is not None:
            raise ValidationError(failure)
        return getattr(client, kind.value)(event)

    def track(self, event: Mapping[str, Any]) -> bool:
        return self._dispatch(EventKind.TRACK, event)

    def identify(self, event: Mapping[str, Any]) -> bool:
        self._require_client()
        if isinstance(event, Mapping):
            event = {**event, "type": EventKind.IDENTIFY.value}
        return self._dispatch(EventKind.IDENTIFY, event)

    def group(self, event: Mapping[str, Any]) -> bool:
        return self._dispatch(EventKind.GROUP, event)

    def page(self, event: Mapping[str, Any]) -> bool:
        return self._dispatch(EventKind.PAGE, event)

    def screen(self, event: Mapping[str, Any]) -> bool:
        return self._dispatch(EventKind.SCREEN, event)

    def alias(self, event: Mapping[str, Any]) -> bool:
        return self._dispatch(EventKind.ALIAS, event)

    def flush(self) -> bool:
        return self._require_client().flush()

    def close(self) -> None:
        """Flush and release the delivery client; later calls fail as uninitialized."""

        client, self._client = self._client, None
        if client is None:
            return
        client.flush()
        shutdown = getattr(client, "shutdown", None)
        if shutdown is not None:
            shutdown()
