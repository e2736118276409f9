import pytest
from pydantic import ValidationError

from tab_management.tab_actions import IntentKind, TabIntent


def test_intent_defaults():
    intent = TabIntent(kind=IntentKind.SELECT_ALL)
    assert intent.selected is True
    assert intent.tab_id is None


@pytest.mark.parametrize("kind,missing", [
    (IntentKind.SELECT_TAB, "tab_id"),
    (IntentKind.RESTORE_SESSION, "index"),
    (IntentKind.RENAME_SESSION, "name"),
    (IntentKind.IMPORT_SESSIONS, "payload"),
    (IntentKind.SET_SEARCH, "value"),
])
def test_required_fields(kind, missing):
    with pytest.raises(ValidationError, match=missing):
        TabIntent(kind=kind, index=0 if missing == "name" else None)


def test_negative_session_index_rejected():
    with pytest.raises(ValidationError):
        TabIntent(kind=IntentKind.DELETE_SESSION, index=-1)


def test_intent_from_wire_message():
    intent = TabIntent.model_validate({"kind": "restore_session", "index": 2})
    assert intent.kind == IntentKind.RESTORE_SESSION
    assert intent.index == 2
