"""Tests for the slot-filling dialog manager."""

import pytest

from core.dialog.dialog_manager import DialogManager, DialogState, _has_value
from core.intent.rules import Intent
from core.state.state_manager import ConversationState


@pytest.fixture
def manager():
    return DialogManager()


def entities(code=None, class_name=None):
    return {"code": code, "kode": code, "class_name": class_name, "kelas": class_name, "date": None}


def test_missing_slot_asks_and_keeps_state(manager):
    state = ConversationState()
    result = manager.manage(state, Intent.STUDENT_SUBMIT, entities(), "kumpul")
    assert result.state == DialogState.ASK_SLOT
    assert result.ask_for == "code"
    assert "assignment code" in result.message
    assert state.last_intent == Intent.STUDENT_SUBMIT.value


def test_short_code_reply_continues_prior_intent(manager):
    state = ConversationState(last_intent=Intent.STUDENT_SUBMIT.value)
    # A bare code classifies as detail; the pending submit wins
    result = manager.manage(state, Intent.STUDENT_DETAIL, entities(code="BD-03"), "BD-03")
    assert result.state == DialogState.ROUTE
    assert result.intent == Intent.STUDENT_SUBMIT
    assert result.continued_prior
    assert result.slots["code"] == "BD-03"
    assert state.is_empty()


def test_action_verb_starts_a_new_request(manager):
    state = ConversationState(last_intent=Intent.STUDENT_SUBMIT.value)
    result = manager.manage(state, Intent.STUDENT_DETAIL, entities(code="BD-03"), "detail BD-03")
    assert result.intent == Intent.STUDENT_DETAIL
    assert not result.continued_prior
    assert result.state == DialogState.ROUTE


def test_long_reply_with_code_is_not_a_continuation(manager):
    state = ConversationState(last_intent=Intent.STUDENT_SUBMIT.value)
    text = "what about BD-03 from last week"
    result = manager.manage(state, Intent.STUDENT_DETAIL, entities(code="BD-03"), text)
    assert result.intent == Intent.STUDENT_DETAIL


def test_fallback_resumes_prior_and_fills_next_slot(manager):
    state = ConversationState()
    first = manager.manage(state, Intent.TEACHER_BROADCAST, entities(code="BD-03"), "broadcast BD-03")
    assert first.state == DialogState.ASK_SLOT
    assert first.ask_for == "class_name"

    second = manager.manage(state, Intent.FALLBACK, entities(class_name="XIITKJ2"), "xiitkj2")
    assert second.state == DialogState.ROUTE
    assert second.intent == Intent.TEACHER_BROADCAST
    assert second.continued_prior
    assert second.slots["code"] == "BD-03"
    assert second.slots["class_name"] == "XIITKJ2"


def test_merge_never_overwrites_a_filled_slot(manager):
    state = ConversationState(last_intent=Intent.TEACHER_BROADCAST.value, slots={"code": "BD-03"})
    result = manager.manage(state, Intent.FALLBACK, entities(code="MTK001", class_name="XIITKJ2"),
                            "MTK001 xiitkj2")
    assert result.slots["code"] == "BD-03"


def test_aliases_fill_canonical_slots(manager):
    state = ConversationState()
    result = manager.manage(state, Intent.STUDENT_DEADLINE,
                            {"kode_tugas": "BD-03", "code": None}, "deadline BD-03")
    assert result.state == DialogState.ROUTE
    assert result.slots["code"] == "BD-03"


def test_intent_without_slot_rules_routes_immediately(manager):
    state = ConversationState()
    result = manager.manage(state, Intent.STUDENT_MY_TASKS, entities(), "tugas saya")
    assert result.state == DialogState.ROUTE
    assert state.is_empty()


def test_fallback_without_prior_stays_fallback(manager):
    state = ConversationState()
    result = manager.manage(state, Intent.FALLBACK, entities(), "ok")
    assert result.intent == Intent.FALLBACK
    assert result.state == DialogState.ROUTE
    assert state.last_intent is None


def test_creation_prior_owns_the_turn_except_save_and_cancel(manager):
    state = ConversationState(last_intent=Intent.TEACHER_CREATE_ASSIGNMENT.value)
    result = manager.manage(state, Intent.STUDENT_STATUS, entities(), "Title: status report")
    assert result.intent == Intent.TEACHER_CREATE_ASSIGNMENT
    assert result.state == DialogState.ROUTE
    assert state.last_intent == Intent.TEACHER_CREATE_ASSIGNMENT.value

    cancelled = manager.manage(state, Intent.FALLBACK, entities(), "batal")
    assert cancelled.intent == Intent.TEACHER_CREATE_ASSIGNMENT
    assert cancelled.continued_prior


@pytest.mark.parametrize(
    "value,expected",
    [("BD-03", True), ("   ", False), ("", False), (None, False), (0, True),
     (False, False), ([], False), ({"a": 1}, False)],
)
def test_has_value(value, expected):
    assert _has_value(value) is expected
