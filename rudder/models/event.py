from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple


class EventKind(str, Enum):
    TRACK = "track"
    IDENTIFY = "identify"
    GROUP = "group"
    PAGE = "page"
    SCREEN = "screen"
    ALIAS = "alias"


@dataclass(frozen=True)
class EventRule:
    """Required-field rule for one event kind.

    ``required`` fields are checked before the shared identity rule, so the
    kind-specific message wins when both are violated.
    """

    kind: EventKind
    required: Tuple[str, ...] = ()
    missing_message: Optional[str] = None
    requires_identity: bool = True


@dataclass(frozen=True)
class ValidationFailure:
    """Explicit result describing why an event was rejected."""

    kind: EventKind
    fields: Tuple[str, ...]
    message: str


IDENTITY_FIELDS = ("userId", "anonymousId")

EVENT_RULES: Dict[EventKind, EventRule] = {
    EventKind.TRACK: EventRule(
        EventKind.TRACK, ("event",), "track() expects an event"
    ),
    EventKind.IDENTIFY: EventRule(EventKind.IDENTIFY),
    EventKind.GROUP: EventRule(
        EventKind.GROUP, ("groupId",), "group() expects groupId"
    ),
    EventKind.PAGE: EventRule(EventKind.PAGE),
    EventKind.SCREEN: EventRule(EventKind.SCREEN),
    EventKind.ALIAS: EventRule(
        EventKind.ALIAS,
        ("userId", "previousId"),
        "alias() requires both userId and previousId",
        requires_identity=False,
    ),
}


def is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (str, bytes, list, tuple, dict, set)):
        return len(value) > 0
    return True


def validate_event(kind: EventKind, event: Any) -> Optional[ValidationFailure]:
    """Return the first rule ``event`` breaks for ``kind``, or ``None``."""

    kind = EventKind(kind)
    if not isinstance(event, Mapping):
        return ValidationFailure(
            kind, (), f"{kind.value}() expects a mapping, got {type(event).__name__}"
        )

    rule = EVENT_RULES[kind]
    missing = tuple(name for name in rule.required if not is_present(event.get(name)))
    if missing:
        return ValidationFailure(kind, missing, rule.missing_message or "")

    if rule.requires_identity and not any(
        is_present(event.get(name)) for name in IDENTITY_FIELDS
    ):
        return ValidationFailure(
            kind, IDENTITY_FIELDS, f"{kind.value}() requires userId or anonymousId"
        )
    return None
