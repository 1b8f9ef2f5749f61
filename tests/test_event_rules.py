import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from rudder.models.event import EventKind, is_present, validate_event


@pytest.mark.parametrize("value", [None, "", [], {}])
def test_blank_values(value):
    assert not is_present(value)


@pytest.mark.parametrize("value", ["u1", 0, False, ["x"]])
def test_present_values(value):
    assert is_present(value)


def test_track_field_check_runs_before_identity_check():
    failure = validate_event(EventKind.TRACK, {})
    assert failure.fields == ("event",)
    assert failure.message == "track() expects an event"


def test_track_requires_identity():
    failure = validate_event(EventKind.TRACK, {"event": "Signed Up"})
    assert failure.fields == ("userId", "anonymousId")
    assert failure.message == "track() requires userId or anonymousId"


def test_group_requires_group_id():
    failure = validate_event(EventKind.GROUP, {"userId": "u1", "groupId": ""})
    assert failure.message == "group() expects groupId"


@pytest.mark.parametrize("kind", [EventKind.IDENTIFY, EventKind.PAGE, EventKind.SCREEN])
def test_identity_only_kinds(kind):
    assert validate_event(kind, {"anonymousId": "a1"}) is None
    failure = validate_event(kind, {"userId": ""})
    assert failure.message == f"{kind.value}() requires userId or anonymousId"


def test_alias_ignores_anonymous_id():
    failure = validate_event(EventKind.ALIAS, {"anonymousId": "a1", "userId": "u1"})
    assert failure.fields == ("previousId",)
    assert failure.message == "alias() requires both userId and previousId"
    assert validate_event(EventKind.ALIAS, {"userId": "u1", "previousId": "p1"}) is None


def test_kind_accepts_plain_string():
    assert validate_event("page", {"userId": "u1"}) is None


def test_non_mapping_event():
    failure = validate_event(EventKind.SCREEN, ["userId"])
    assert failure.message == "screen() expects a mapping, got list"
