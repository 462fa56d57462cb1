"""Tests for the assignment creation wizard, driven through the pipeline."""

import itertools

import pytest

from conftest import CLASS, STUDENT, STUDENT2, STUDENT3, TEACHER
from core.models import Progress
from core.state.payloads import AfterCreatePayload, CreationPayload, CreationStep
from core.state.state_manager import MenuMode
from core.wizards.assignment_creation import (
    PDF_REQUIRED_NOTE,
    apply_update,
    parse_batch,
    parse_line,
)
from services.store import InMemoryStore
from services.transport import InboundMessage

FULL_FORM = (
    "Code: MTK001\n"
    "Title: Linear equations\n"
    "Description: Exercises 1-10 on page 42\n"
    "Attach PDF: no\n"
    "Auto grade: no\n"
    "Deadline: 3\n"
    f"Class: {CLASS}"
)


class RacyStore(InMemoryStore):
    """Pre-checks never see the competing insert; only create_assignment does."""

    async def find_assignment_by_code(self, code):
        return None


# ---------------------------------------------------------------------------
# Form parsing
# ---------------------------------------------------------------------------


def test_parse_line_accepts_both_languages():
    assert parse_line("Kode: mtk-001") == ("code", "mtk-001")
    assert parse_line("- Judul: Aljabar") == ("title", "Aljabar")
    assert parse_line("Lampirkan PDF (ya/tidak): ya") == ("attach_pdf", "ya")
    assert parse_line("Kelas: XII TKJ 2") == ("class_name", "XII TKJ 2")


def test_parse_line_ignores_placeholders_and_noise():
    assert parse_line("Code: (type the code)") is None
    assert parse_line("Favourite colour: blue") is None
    assert parse_line("just some text") is None


def test_batch_applies_every_line_last_one_wins():
    updates, notes = parse_batch("Code: abc1\nTitle: Algebra\nCode: mtk 9!\nDeadline: soon")
    payload = CreationPayload()
    for update in updates:
        apply_update(payload, update)
    assert payload.code == "MTK9"
    assert payload.title == "Algebra"
    assert payload.deadline_days is None
    assert len(notes) == 1


DISJOINT_LINES = ("Code: mtk-001", "Title: Linear equations", "Deadline: 3 hari", "Kelas: xii tkj 2")


def applied(lines):
    payload = CreationPayload()
    for line in lines:
        updates, _ = parse_batch(line)
        for update in updates:
            apply_update(payload, update)
    return payload


@pytest.mark.parametrize("order", list(itertools.permutations(DISJOINT_LINES)))
def test_batch_equals_line_by_line_in_any_order(order):
    updates, notes = parse_batch("\n".join(order))
    batched = CreationPayload()
    for update in updates:
        apply_update(batched, update)

    assert notes == []
    assert batched == applied(DISJOINT_LINES)
    assert (batched.code, batched.class_name, batched.deadline_days) == ("MTK-001", CLASS, 3)


@pytest.mark.asyncio
@pytest.mark.parametrize("order", list(itertools.permutations(DISJOINT_LINES))[::5])
async def test_batch_and_separate_messages_leave_the_same_form(make_pipeline, order):
    batched, separate = make_pipeline(), make_pipeline()
    for pipeline in (batched, separate):
        await pipeline.handle_message(InboundMessage(sender=TEACHER, text="buat tugas"))

    await batched.handle_message(InboundMessage(sender=TEACHER, text="\n".join(order)))
    for line in order:
        await separate.handle_message(InboundMessage(sender=TEACHER, text=line))

    form = batched.state_manager.get(TEACHER).wizard
    assert isinstance(form, CreationPayload)
    assert form == separate.state_manager.get(TEACHER).wizard
    assert form.step == CreationStep.COLLECTING_FIELDS


def test_batch_converts_flags_and_class():
    updates, notes = parse_batch("Attach PDF: yes\nAuto grade: no\nKelas: xii tkj 2\nDeadline: 7 hari")
    values = {u.field: u.value for u in updates}
    assert values == {"attach_pdf": True, "auto_grade": False, "class_name": "XIITKJ2", "deadline_days": 7}
    assert notes == []


def test_short_code_is_rejected():
    updates, notes = parse_batch("Code: a!")
    assert updates == []
    assert "at least 3" in notes[0]


# ---------------------------------------------------------------------------
# Conversation flow
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_start_sends_form(say, state_of):
    replies = await say(TEACHER, "buat tugas")
    assert "Create a new assignment" in replies[-1]
    assert isinstance(state_of(TEACHER).wizard, CreationPayload)


@pytest.mark.asyncio
async def test_counts_saved_fields(say, state_of):
    await say(TEACHER, "buat tugas")
    replies = await say(TEACHER, "Code: MTK001\nTitle: Algebra")
    assert replies[-1].startswith("✅ 2 field(s) saved.")
    payload = state_of(TEACHER).wizard
    assert payload.code == "MTK001"
    assert payload.title == "Algebra"


@pytest.mark.asyncio
async def test_unparseable_text_gets_format_hint(say, state_of):
    await say(TEACHER, "buat tugas")
    replies = await say(TEACHER, "halo")
    assert "Label: value" in replies[-1]
    assert isinstance(state_of(TEACHER).wizard, CreationPayload)


@pytest.mark.asyncio
async def test_duplicate_code_reverts_to_previous(say, state_of, seed_assignment):
    await seed_assignment("BD-03")
    await say(TEACHER, "buat tugas")
    await say(TEACHER, "Code: MTK001")
    replies = await say(TEACHER, "Code: BD-03\nTitle: Algebra")

    assert replies[-1].startswith("✅ 1 field(s) saved.")
    assert "already exists" in replies[-1]
    payload = state_of(TEACHER).wizard
    assert payload.code == "MTK001"
    assert payload.title == "Algebra"


@pytest.mark.asyncio
async def test_save_reports_missing_fields(say, state_of):
    await say(TEACHER, "buat tugas")
    await say(TEACHER, "Code: MTK001")
    replies = await say(TEACHER, "1")
    assert "Incomplete fields: Title, Description, Class" in replies[-1]
    assert state_of(TEACHER).wizard.step == CreationStep.COLLECTING_FIELDS


@pytest.mark.asyncio
async def test_invalid_class_blocks_save(say):
    await say(TEACHER, "buat tugas")
    await say(TEACHER, FULL_FORM.replace(f"Class: {CLASS}", "Class: kelas sepuluh"))
    replies = await say(TEACHER, "1")
    assert "Incomplete fields: Class" in replies[-1]


@pytest.mark.asyncio
async def test_full_creation_then_broadcast(say, state_of, store, transport, services):
    await say(TEACHER, "buat tugas")
    await say(TEACHER, FULL_FORM)
    replies = await say(TEACHER, "1")

    assert "Assignment created" in replies[-1]
    created = await store.find_assignment_by_code("MTK001")
    assert created is not None
    assert created.deadline is not None
    assert PDF_REQUIRED_NOTE not in created.description
    assert not created.auto_graded

    statuses = await store.statuses_for_assignment(created.id)
    class_ids = {s.id for s in await store.list_students(CLASS)}
    assert set(statuses) == class_ids
    assert set(statuses.values()) == {Progress.NOT_DONE}
    assert isinstance(state_of(TEACHER).wizard, AfterCreatePayload)

    replies = await say(TEACHER, "1")
    assert "Sending *MTK001* to 2 students" in replies[-1]
    await services.broadcaster.wait_pending()
    assert "Sent: 2, failed: 0, total: 2" in transport.last_text(TEACHER)
    assert any("MTK001" in text for text in transport.texts(STUDENT))
    assert any("MTK001" in text for text in transport.texts(STUDENT2))
    assert transport.texts(STUDENT3) == []
    assert state_of(TEACHER).menu_mode == MenuMode.TEACHER_MENU


@pytest.mark.asyncio
async def test_after_create_back_to_menu(say, state_of, transport):
    await say(TEACHER, "buat tugas")
    await say(TEACHER, FULL_FORM)
    await say(TEACHER, "1")
    await say(TEACHER, "2")
    state = state_of(TEACHER)
    assert state.wizard is None
    assert state.menu_mode == MenuMode.TEACHER_MENU
    assert transport.texts(STUDENT) == []


@pytest.mark.asyncio
async def test_confirm_time_duplicate_is_final_authority(make_pipeline, store, transport):
    racy = RacyStore()
    for user in store.users.values():
        racy.add_user(user.phone, user.name, user.role, user.class_name)
    teacher = await racy.find_user_by_phone(TEACHER)
    await racy.create_assignment(code="MTK001", title="Old", description="Old one",
                                 class_name=CLASS, teacher_id=teacher.id)
    pipeline = make_pipeline(custom_store=racy)

    async def say(text):
        return await pipeline.handle_message(InboundMessage(sender=TEACHER, text=text))

    await say("buat tugas")
    await say(FULL_FORM)
    replies = await say("1")

    assert "already exists" in replies[-1]
    assert [a.code for a in racy.assignments.values()].count("MTK001") == 1
    state = pipeline.state_manager.get(TEACHER)
    assert state.wizard.step == CreationStep.COLLECTING_FIELDS
    assert state.wizard.code is None
    assert state.wizard.title == "Linear equations"


@pytest.mark.asyncio
async def test_attach_pdf_flow(say, send_file, state_of, store, storage):
    await say(TEACHER, "buat tugas")
    replies = await say(TEACHER, FULL_FORM.replace("Attach PDF: no", "Attach PDF: yes"))
    assert "Waiting for the assignment *PDF*" in replies[-1]
    assert state_of(TEACHER).wizard.step == CreationStep.AWAITING_PDF

    replies = await send_file(TEACHER, "soal.pdf")
    assert "PDF received" in replies[-1]
    assert state_of(TEACHER).wizard.step == CreationStep.COLLECTING_FIELDS

    await say(TEACHER, "1")
    created = await store.find_assignment_by_code("MTK001")
    assert created.description.endswith(PDF_REQUIRED_NOTE)
    [upload] = storage.uploads
    assert upload["filename"].startswith("MTK001_")
    assert upload["filename"].endswith("_soal.pdf")
    assert created.pdf_url == f"https://files.test/{upload['filename']}"


@pytest.mark.asyncio
async def test_pdf_sent_while_collecting_is_staged(say, send_file, state_of):
    await say(TEACHER, "buat tugas")
    replies = await send_file(TEACHER, "materi.pdf")
    assert "PDF received" in replies[-1]
    payload = state_of(TEACHER).wizard
    assert payload.attach_pdf is True
    assert payload.pdf.filename == "materi.pdf"


@pytest.mark.asyncio
async def test_non_pdf_attachment_is_refused(say, send_file, state_of):
    await say(TEACHER, "buat tugas")
    await say(TEACHER, "Attach PDF: yes")
    replies = await send_file(TEACHER, "photo.jpg", mime_type="image/jpeg")
    assert "must be a *PDF*" in replies[-1]
    payload = state_of(TEACHER).wizard
    assert payload.step == CreationStep.AWAITING_PDF
    assert payload.pdf is None


@pytest.mark.asyncio
async def test_zero_waives_the_pdf(say, state_of):
    await say(TEACHER, "buat tugas")
    await say(TEACHER, "Attach PDF: yes")
    replies = await say(TEACHER, "0")
    assert "PDF attachment skipped" in replies[-1]
    payload = state_of(TEACHER).wizard
    assert payload.attach_pdf is False
    assert payload.step == CreationStep.COLLECTING_FIELDS


@pytest.mark.asyncio
async def test_cancel_word_while_awaiting_pdf(say, state_of):
    await say(TEACHER, "buat tugas")
    await say(TEACHER, "Attach PDF: yes")
    replies = await say(TEACHER, "batal")
    assert "cancelled" in replies[-1]
    state = state_of(TEACHER)
    assert state.wizard is None
    assert state.menu_mode == MenuMode.TEACHER_MENU


@pytest.mark.asyncio
async def test_answer_key_upload(say, send_file, state_of, store, storage):
    await say(TEACHER, "buat tugas")
    replies = await say(TEACHER, FULL_FORM.replace("Auto grade: no", "Auto grade: yes"))
    assert "answer key PDF" in replies[-1]
    assert state_of(TEACHER).wizard.step == CreationStep.AWAITING_ANSWER_KEY

    await send_file(TEACHER, "kunci.pdf")
    replies = await say(TEACHER, "1")
    assert "*Automatic*" in replies[-1]

    created = await store.find_assignment_by_code("MTK001")
    assert created.auto_graded
    [upload] = storage.uploads
    assert upload["filename"].startswith("key_MTK001_")
    assert upload["filename"].endswith("_kunci.pdf")


@pytest.mark.asyncio
async def test_zero_waives_the_answer_key(say, state_of):
    await say(TEACHER, "buat tugas")
    await say(TEACHER, "Auto grade: yes")
    replies = await say(TEACHER, "0")
    assert "graded *manually*" in replies[-1]
    assert state_of(TEACHER).wizard.auto_grade is False
