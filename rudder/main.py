import logging
from logging.handlers import RotatingFileHandler
from threading import Lock
from typing import Any, List, Mapping, Optional

from rudder.config import configure, configure_from_env
from rudder.delivery.client import DeliveryClient
from rudder.dispatcher import NOT_INITIALIZED_MESSAGE, ClientFactory, Dispatcher
from rudder.errors import AlreadyInitializedError, NotInitializedError
from rudder.models.config import Configuration


APP_NAME = "rudder"

logger = logging.getLogger(APP_NAME)
logger.addHandler(logging.NullHandler())

_init_lock = Lock()
_dispatcher: Optional[Dispatcher] = None
_log_handlers: List[logging.Handler] = []


def configure_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> None:
    """Attach console (and optionally rotating file) handlers to the library logger.

    Handlers from an earlier call are replaced, not duplicated.
    """

    for handler in _log_handlers:
        logger.removeHandler(handler)
        handler.close()
    _log_handlers.clear()

    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=5))
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(level)
        logger.addHandler(handler)
        _log_handlers.append(handler)
    logger.setLevel(level)


def _publish(config: Configuration, client_factory: Optional[ClientFactory]) -> Dispatcher:
    global _dispatcher
    with _init_lock:
        if _dispatcher is not None:
            raise AlreadyInitializedError(
                "initialize() has already been called; call shutdown() before re-initializing"
            )
        dispatcher = Dispatcher(config, client_factory or DeliveryClient)
        _dispatcher = dispatcher
    logger.info("Tracking initialized for %s", config.endpoint)
    return dispatcher


def initialize(
    secret_key: str,
    options: Optional[Mapping[str, Any]] = None,
    client_factory: Optional[ClientFactory] = None,
) -> Dispatcher:
    """Configure the process-wide dispatcher.

    ``options`` must carry ``dataPlaneURL``; ``sslEnabled`` defaults to true
    and any other key is handed to the delivery client untouched. The
    returned dispatcher can also be passed around directly instead of using
    the module-level functions.
    """

    return _publish(configure(secret_key, options), client_factory)


def initialize_from_env(client_factory: Optional[ClientFactory] = None) -> Dispatcher:
    return _publish(configure_from_env(), client_factory)


def get_dispatcher() -> Dispatcher:
    dispatcher = _dispatcher
    if dispatcher is None:
        raise NotInitializedError(NOT_INITIALIZED_MESSAGE)
    return dispatcher


def shutdown() -> None:
    """Flush pending events and return to the uninitialized state."""

    global _dispatcher
    with _init_lock:
        dispatcher, _dispatcher = _dispatcher, None
    if dispatcher is not None:
        dispatcher.close()


def track(event: Mapping[str, Any]) -> bool:
    return get_dispatcher().track(event)


def identify(event: Mapping[str, Any]) -> bool:
    return get_dispatcher().identify(event)


def group(event: Mapping[str, Any]) -> bool:
    return get_dispatcher().group(event)


def page(event: Mapping[str, Any]) -> bool:
    return get_dispatcher().page(event)


def screen(event: Mapping[str, Any]) -> bool:
    return get_dispatcher().screen(event)


def alias(event: Mapping[str, Any]) -> bool:
    return get_dispatcher().alias(event)


def flush() -> bool:
    return get_dispatcher().flush()
