"""End-to-end tests for the unified pipeline's dispatch contract."""

import asyncio

import pytest

from conftest import STUDENT, TEACHER, OutboxTransport, RecordingSleep
from app.unified_pipeline import APOLOGY_TEXT, DISPATCH_ORDER
from core.errors import TransientStoreError
from core.state.payloads import CreationPayload
from core.state.state_manager import MenuMode
from services.broadcaster import ThrottledBroadcaster
from services.store import InMemoryStore
from services.transport import InboundMessage


class FlakyStore(InMemoryStore):
    """Fails the first `failures` user lookups with a retryable error."""

    def __init__(self, failures):
        super().__init__()
        self.failures = failures
        self.lookups = 0

    async def find_user_by_phone(self, phone):
        self.lookups += 1
        if self.lookups <= self.failures:
            raise TransientStoreError("connection reset")
        return await super().find_user_by_phone(phone)


class YieldingTransport(OutboxTransport):
    """Yields to the event loop on every send so concurrent turns interleave."""

    async def send(self, identity, content):
        await asyncio.sleep(0)
        await super().send(identity, content)


def test_dispatch_order_is_fixed():
    assert DISPATCH_ORDER == ("wizard", "menu", "greeting", "classification")


@pytest.mark.asyncio
async def test_unregistered_sender_gets_registration_reply(say, transport):
    replies = await say("628999999999", "halo")
    assert "not registered" in replies[0]
    assert "https://kinantiku.com" in replies[0]
    assert transport.texts("628999999999") == replies


@pytest.mark.asyncio
async def test_group_messages_are_ignored(say, transport):
    assert await say("120363000000@g.us", "halo") == []
    assert transport.sent == []


@pytest.mark.asyncio
async def test_sender_suffix_and_local_prefix_are_normalized(say):
    replies = await say("081100000001@c.us", "halo")
    assert "Bu Sari" in replies[0]


@pytest.mark.asyncio
async def test_greeting_opens_role_menu(say, state_of):
    replies = await say(TEACHER, "Halo Kinanti")
    assert "Create assignment" in replies[0]
    assert state_of(TEACHER).menu_mode == MenuMode.TEACHER_MENU

    replies = await say(STUDENT, "hai")
    assert "My open assignments" in replies[0]
    assert state_of(STUDENT).menu_mode == MenuMode.STUDENT_MENU


@pytest.mark.asyncio
async def test_invalid_menu_digit_reprompts(say, state_of):
    await say(STUDENT, "menu")
    replies = await say(STUDENT, "9")
    assert replies == ["⚠️ Please type a number 1-5, or 0 to exit."]
    assert state_of(STUDENT).menu_mode == MenuMode.STUDENT_MENU


@pytest.mark.asyncio
async def test_menu_exit_clears_state(say, pipeline):
    await say(TEACHER, "menu")
    replies = await say(TEACHER, "0")
    assert "Menu closed" in replies[0]
    assert TEACHER not in pipeline.state_manager


@pytest.mark.asyncio
async def test_menu_help_keeps_menu_mode(say, state_of):
    await say(STUDENT, "menu")
    replies = await say(STUDENT, "5")
    assert "Student guide" in replies[0]
    assert state_of(STUDENT).menu_mode == MenuMode.STUDENT_MENU


@pytest.mark.asyncio
async def test_free_text_leaves_menu_and_is_classified(say, state_of):
    await say(TEACHER, "menu")
    replies = await say(TEACHER, "rekap")
    assert "no assignments to recap" in replies[0]


@pytest.mark.asyncio
async def test_wizard_takes_precedence_over_greeting(say, state_of):
    await say(TEACHER, "buat tugas")
    replies = await say(TEACHER, "halo")
    assert "Label: value" in replies[0]
    assert isinstance(state_of(TEACHER).wizard, CreationPayload)


@pytest.mark.asyncio
async def test_menu_takes_precedence_over_classification(say, state_of):
    await say(STUDENT, "menu")
    # "1" alone would classify as fallback; the menu maps it to my tasks
    replies = await say(STUDENT, "1")
    assert "No open assignments" in replies[0]


@pytest.mark.asyncio
async def test_unknown_text_gets_hint_and_menu(say, state_of):
    replies = await say(STUDENT, "ok")
    assert "didn't catch that" in replies[0]
    assert state_of(STUDENT).menu_mode == MenuMode.STUDENT_MENU


@pytest.mark.asyncio
async def test_student_naming_their_role_gets_the_hint_not_a_refusal(say):
    replies = await say(STUDENT, "saya siswa")
    assert "didn't catch that" in replies[0]


@pytest.mark.asyncio
async def test_student_cannot_use_teacher_features(say, state_of, store):
    replies = await say(STUDENT, "buat tugas")
    assert replies == ["⛔ That feature is only available for teachers."]
    assert state_of(STUDENT).is_empty()
    assert store.assignments == {}


@pytest.mark.asyncio
async def test_teacher_cannot_use_student_features(say, state_of):
    replies = await say(TEACHER, "tugas saya")
    assert replies == ["⛔ That feature is only available for students."]
    assert state_of(TEACHER).is_empty()


@pytest.mark.asyncio
async def test_forbidden_intent_is_not_asked_for_slots(say, state_of):
    replies = await say(STUDENT, "broadcast")
    assert replies == ["⛔ That feature is only available for teachers."]
    assert state_of(STUDENT).last_intent is None


@pytest.mark.asyncio
async def test_teacher_broadcast_slots_across_turns(say, transport, seed_assignment, services):
    await seed_assignment("BD-03")
    assert await say(TEACHER, "broadcast") == ["Which assignment code? (e.g. BD-03)"]
    assert await say(TEACHER, "BD-03") == ["Which class? (e.g. XIITKJ2 or XI TKJ 2)"]
    replies = await say(TEACHER, "xii tkj 2")
    assert "Sending *BD-03* to 2 students of class *XIITKJ2*" in replies[0]
    await services.broadcaster.wait_pending()
    assert "Sent: 2, failed: 0, total: 2" in transport.last_text(TEACHER)
    assert any("BD-03" in text for text in transport.texts(STUDENT))


class GatedSleep:
    """Sleep stand-in that blocks until the test opens the gate."""

    def __init__(self):
        self.opened = asyncio.Event()

    async def __call__(self, seconds):
        await self.opened.wait()


@pytest.mark.asyncio
async def test_teacher_is_answered_while_broadcast_is_running(say, services, transport, seed_assignment):
    await seed_assignment("BD-03")
    gate = GatedSleep()
    services.broadcaster = ThrottledBroadcaster(transport, batch_size=20, delay_min=5.0, delay_max=5.0,
                                                batch_pause=60.0, sleep=gate)

    await say(TEACHER, "broadcast")
    await say(TEACHER, "BD-03")
    replies = await say(TEACHER, "xii tkj 2")
    assert "I'll report back" in replies[0]

    # The fan-out is parked on its throttle delay; the teacher can still use the bot
    replies = await say(TEACHER, "menu")
    assert "Create assignment" in replies[0]
    assert not any("Sent:" in text for text in transport.texts(TEACHER))
    assert services.broadcaster.pending

    gate.opened.set()
    await services.broadcaster.wait_pending()
    assert "Sent: 2, failed: 0, total: 2" in transport.last_text(TEACHER)


@pytest.mark.asyncio
async def test_report_shortcut_asks_for_class(say, transport, state_of, seed_assignment, store):
    assignment = await seed_assignment("BD-03")
    student = await store.find_user_by_phone(STUDENT)
    await store.upsert_submission(assignment.id, student.id, "https://files.test/a.pdf")

    replies = await say(TEACHER, "rekap BD-03")
    assert "Which class" in replies[0]
    replies = await say(TEACHER, "XII TKJ 2")
    assert "✅ Submitted: 1" in replies[0]
    assert "1. Budi" in replies[0]
    [document] = transport.documents(TEACHER)
    assert document.filename.startswith("recap_BD-03_XIITKJ2_")
    assert document.data[:2] == b"PK"
    assert state_of(TEACHER).menu_mode == MenuMode.TEACHER_MENU


@pytest.mark.asyncio
async def test_unknown_code_is_reported(say):
    replies = await say(STUDENT, "detail ZZZ-99")
    assert replies == ["⚠️ Assignment ZZZ-99 was not found for your class."]


@pytest.mark.asyncio
async def test_error_sends_apology_and_keeps_previous_state(say, state_of, store, transport, monkeypatch):
    await say(STUDENT, "menu")

    async def boom(*args, **kwargs):
        raise RuntimeError("database exploded")

    monkeypatch.setattr(store, "list_assignments", boom)
    replies = await say(STUDENT, "1")

    assert replies == [APOLOGY_TEXT]
    assert transport.last_text(STUDENT) == APOLOGY_TEXT
    # The failed turn cleared the menu in its working copy; that copy was never stored
    assert state_of(STUDENT).menu_mode == MenuMode.STUDENT_MENU


@pytest.mark.asyncio
async def test_role_lookup_is_retried_with_backoff(make_pipeline, store, transport):
    flaky = FlakyStore(failures=2)
    flaky.add_user(TEACHER, "Bu Sari", "teacher")
    sleep = RecordingSleep()
    pipeline = make_pipeline(custom_store=flaky, sleep=sleep)

    replies = await pipeline.handle_message(InboundMessage(sender=TEACHER, text="halo"))
    assert "Bu Sari" in replies[0]
    assert flaky.lookups == 3
    assert sleep.calls == [1.0, 2.0]


@pytest.mark.asyncio
async def test_exhausted_retries_end_in_apology(make_pipeline, transport):
    flaky = FlakyStore(failures=10)
    flaky.add_user(TEACHER, "Bu Sari", "teacher")
    sleep = RecordingSleep()
    pipeline = make_pipeline(custom_store=flaky, sleep=sleep)

    replies = await pipeline.handle_message(InboundMessage(sender=TEACHER, text="halo"))
    assert replies == [APOLOGY_TEXT]
    assert flaky.lookups == 3
    assert sleep.calls == [1.0, 2.0]


@pytest.mark.asyncio
async def test_turns_of_one_identity_are_serialized(make_pipeline, store):
    transport = YieldingTransport()
    pipeline = make_pipeline(custom_transport=transport)

    first, second = await asyncio.gather(
        pipeline.handle_message(InboundMessage(sender=TEACHER, text="buat tugas")),
        pipeline.handle_message(InboundMessage(sender=TEACHER, text="Code: MTK001")),
    )
    assert "Create a new assignment" in first[0]
    # The second turn saw the wizard the first one opened
    assert second[0].startswith("✅ 1 field(s) saved.")
    assert pipeline.state_manager.get(TEACHER).wizard.code == "MTK001"


@pytest.mark.asyncio
async def test_identities_keep_separate_state(say, state_of):
    await say(TEACHER, "buat tugas")
    await say(STUDENT, "menu")
    assert isinstance(state_of(TEACHER).wizard, CreationPayload)
    assert state_of(STUDENT).wizard is None
    assert state_of(STUDENT).menu_mode == MenuMode.STUDENT_MENU
