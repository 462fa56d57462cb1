"""
Assignment Creation wizard

    COLLECTING_FIELDS --1--> CONFIRM_SAVE --ok--> AFTER_CREATE_CHOICE
          |  ^                   |
          |  +----duplicate------+
          +--> AWAITING_PDF / AWAITING_ANSWER_KEY (when the flags are armed)

Fields arrive as `Label: value` lines, any number per message. Every line of a
batch is applied on its own; the last line wins when a field repeats.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from core.errors import DuplicateError, ValidationError
from core.intent.entity_extractor import is_valid_class_name, normalize_class_name
from core.models import Assignment, format_datetime
from core.state.payloads import AfterCreatePayload, CreationPayload, CreationStep, StagedFile
from core.wizards.base import TurnContext, cancel_wizard, finish_to_menu, is_cancel
from core.wizards.broadcast import send_and_report
from services.transport import PDF_MIME

logger = logging.getLogger(__name__)

LINE_PATTERN = re.compile(r"^\s*-?\s*([a-zA-Z()\[\]/ _-]+?)\s*:\s*(.+?)\s*$")
YES_PATTERN = re.compile(r"^(?:ya|yes|y)$", re.IGNORECASE)
PLACEHOLDER_PATTERN = re.compile(r"^\((?:ketik|type)\b", re.IGNORECASE)

FIELD_LABELS: Dict[str, str] = {
    "code": "code",
    "kode": "code",
    "assignment code": "code",
    "kode tugas": "code",
    "title": "title",
    "judul": "title",
    "description": "description",
    "deskripsi": "description",
    "attach pdf": "attach_pdf",
    "lampirkan pdf": "attach_pdf",
    "lampir pdf": "attach_pdf",
    "auto grade": "auto_grade",
    "auto grading": "auto_grade",
    "penilaian otomatis": "auto_grade",
    "deadline": "deadline_days",
    "deadline days": "deadline_days",
    "deadline hari": "deadline_days",
    "class": "class_name",
    "kelas": "class_name",
}

FIELD_NAMES = {
    "code": "Code",
    "title": "Title",
    "description": "Description",
    "attach_pdf": "Attach PDF",
    "auto_grade": "Auto grade",
    "deadline_days": "Deadline",
    "class_name": "Class",
}

PDF_REQUIRED_NOTE = "[PDF submission required]"

FORM_TEMPLATE = (
    "📝 *Create a new assignment*\n"
    "Copy the form, fill it in and send it back (one or more lines at a time):\n\n"
    "Code: MTK001\n"
    "Title: Linear equations\n"
    "Description: Exercises 1-10 on page 42\n"
    "Attach PDF: yes/no\n"
    "Auto grade: yes/no\n"
    "Deadline: 3 (days from now)\n"
    "Class: XIITKJ2\n\n"
    "*1.* ✅ Save assignment\n"
    "*0.* ❌ Cancel"
)

SAVE_OR_CANCEL = "*1.* ✅ Save assignment\n*0.* ❌ Cancel"


@dataclass
class FieldUpdate:
    field: str
    value: Any


def clean_label(label: str) -> str:
    label = re.sub(r"\(.*?\)|\[.*?\]", " ", label)
    label = re.sub(r"[-_/]", " ", label)
    return re.sub(r"\s+", " ", label).strip().lower()


def parse_line(line: str) -> Optional[Tuple[str, str]]:
    """`Label: value` -> (field name, raw value), or None for anything else."""
    match = LINE_PATTERN.match(line or "")
    if not match:
        return None
    field_name = FIELD_LABELS.get(clean_label(match.group(1)))
    value = match.group(2).strip()
    if field_name is None or not value or PLACEHOLDER_PATTERN.match(value):
        return None
    return field_name, value


def clean_code(raw: str) -> str:
    return re.sub(r"[^A-Z0-9_-]", "", str(raw or "").upper())


def convert_value(field_name: str, raw: str) -> Tuple[Any, Optional[str]]:
    """Convert a raw value; returns (value, error note)."""
    if field_name == "code":
        code = clean_code(raw)
        if len(code) < 3:
            return None, "Code must have at least 3 letters or digits."
        return code, None
    if field_name in ("attach_pdf", "auto_grade"):
        return bool(YES_PATTERN.match(raw.strip())), None
    if field_name == "deadline_days":
        digits = re.sub(r"\D", "", raw)
        if not digits:
            return None, "Deadline must be a number of days, e.g. `Deadline: 3`."
        return int(digits), None
    if field_name == "class_name":
        return normalize_class_name(raw), None
    return raw.strip(), None


def parse_batch(text: str) -> Tuple[List[FieldUpdate], List[str]]:
    updates: List[FieldUpdate] = []
    notes: List[str] = []
    for line in (text or "").splitlines():
        parsed = parse_line(line)
        if parsed is None:
            continue
        value, note = convert_value(*parsed)
        if note:
            notes.append(note)
        else:
            updates.append(FieldUpdate(parsed[0], value))
    return updates, notes


def apply_update(payload: CreationPayload, update: FieldUpdate):
    setattr(payload, update.field, update.value)
    if update.field == "attach_pdf" and not update.value:
        payload.pdf = None
    if update.field == "auto_grade" and not update.value:
        payload.answer_key = None


def missing_fields(payload: CreationPayload) -> List[str]:
    missing = [FIELD_NAMES[name] for name in ("code", "title", "description")
               if not getattr(payload, name)]
    if not is_valid_class_name(payload.class_name):
        missing.append(FIELD_NAMES["class_name"])
    return missing


def validate(payload: CreationPayload):
    missing = missing_fields(payload)
    if missing:
        raise ValidationError(f"incomplete fields: {', '.join(missing)}", missing)


def compute_deadline(days: Optional[int], now: Optional[datetime] = None) -> Optional[datetime]:
    if not days or days <= 0:
        return None
    return (now or datetime.now(timezone.utc)) + timedelta(days=days)


def upload_name(code: str, staged: StagedFile, prefix: str = "", fallback_suffix: str = "") -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    base = staged.filename if staged.filename.lower().endswith(".pdf") else f"{code}{fallback_suffix}.pdf"
    return f"{prefix}{code}_{stamp}_{base}"


def yes_no(value: Optional[bool]) -> str:
    if value is None:
        return "-"
    return "yes" if value else "no"


def recap_text(payload: CreationPayload) -> str:
    lines = [
        "📋 *Assignment draft*",
        f"• Code: {payload.code or '-'}",
        f"• Title: {payload.title or '-'}",
        f"• Description: {payload.description or '-'}",
        f"• Attach PDF: {yes_no(payload.attach_pdf)}"
        + (f" ({payload.pdf.filename})" if payload.pdf else ""),
        f"• Auto grade: {yes_no(payload.auto_grade)}"
        + (f" ({payload.answer_key.filename} 🔑)" if payload.answer_key else ""),
        f"• Deadline: {payload.deadline_days or '-'} day(s)",
        f"• Class: {payload.class_name or '-'}",
    ]
    return "\n".join(lines)


def conflict_text(existing: Optional[Assignment], code: str, tz_name: str) -> str:
    lines = [f"🚫 *An assignment with code {code} already exists.*"]
    if existing is not None:
        lines += [
            f"• Code: *{existing.code}*",
            f"• Title: {existing.title}",
            f"• Class: {existing.class_name}",
            f"• Deadline: {format_datetime(existing.deadline, tz_name)}",
        ]
    lines += ["", "Please choose a *new code*, e.g. `Code: MTK124`, then *1* to save. ✏️"]
    return "\n".join(lines)


PDF_PROMPT = ("⏳ Waiting for the assignment *PDF*.\n\n"
              "📎 Send the PDF file now\n*0.* Skip (no attachment)")
KEY_PROMPT = ("⏳ Waiting for the *answer key PDF*.\n\n"
              "🔑 Send the PDF file now\n*0.* Skip (manual grading)")


class AssignmentCreationWizard:
    async def start(self, ctx: TurnContext):
        ctx.state.enter_wizard(CreationPayload())
        await ctx.reply(FORM_TEMPLATE)

    async def handle(self, ctx: TurnContext, payload: CreationPayload):
        if payload.step == CreationStep.AWAITING_PDF:
            await self._await_attachment(ctx, payload, answer_key=False)
        elif payload.step == CreationStep.AWAITING_ANSWER_KEY:
            await self._await_attachment(ctx, payload, answer_key=True)
        else:
            await self._collect(ctx, payload)

    # ==================== COLLECTING_FIELDS ====================

    async def _collect(self, ctx: TurnContext, payload: CreationPayload):
        if ctx.message.has_attachment:
            await self._stage_during_collection(ctx, payload)
            return
        if is_cancel(ctx.text):
            await cancel_wizard(ctx, "Assignment creation cancelled")
            return
        if ctx.text == "1":
            await self._save(ctx, payload)
            return

        updates, notes = parse_batch(ctx.text)
        if not updates and not notes:
            await ctx.reply("🤔 Use the `Label: value` format, for example:\n\n"
                            "Code: MTK001\nClass: XIITKJ2\n\n" + SAVE_OR_CANCEL)
            return

        previous_code = payload.code
        applied = set()
        for update in updates:
            apply_update(payload, update)
            applied.add(update.field)

        if "code" in applied and payload.code != previous_code:
            existing = await ctx.store.find_assignment_by_code(payload.code)
            if existing is not None:
                notes.append(conflict_text(existing, payload.code, ctx.tz_name))
                payload.code = previous_code
                applied.discard("code")

        header = f"✅ {len(applied)} field(s) saved."
        if notes:
            header += "\n\n" + "\n".join(notes)
        await self._next_step(ctx, payload, header)

    async def _stage_during_collection(self, ctx: TurnContext, payload: CreationPayload):
        if not ctx.message.has_pdf:
            await ctx.reply("📎 Only *PDF* attachments are accepted.")
            return
        staged = await self._download(ctx, "attachment.pdf")
        if staged is None:
            return
        payload.pdf = staged
        payload.attach_pdf = True
        await self._next_step(ctx, payload, f"✅ *PDF received:* {staged.filename}")

    async def _next_step(self, ctx: TurnContext, payload: CreationPayload, header: str):
        if payload.pdf_pending:
            payload.step = CreationStep.AWAITING_PDF
            await ctx.reply(f"{header}\n\n{PDF_PROMPT}")
        elif payload.answer_key_pending:
            payload.step = CreationStep.AWAITING_ANSWER_KEY
            await ctx.reply(f"{header}\n\n{KEY_PROMPT}")
        else:
            payload.step = CreationStep.COLLECTING_FIELDS
            await ctx.reply(f"{header}\n\n{recap_text(payload)}\n\n{SAVE_OR_CANCEL}")

    # ==================== AWAITING_PDF / AWAITING_ANSWER_KEY ====================

    async def _await_attachment(self, ctx: TurnContext, payload: CreationPayload, answer_key: bool):
        prompt = KEY_PROMPT if answer_key else PDF_PROMPT
        if ctx.message.has_attachment:
            if not ctx.message.has_pdf:
                await ctx.reply("📎 The file must be a *PDF*. Please send it again.\n\n" + prompt)
                return
            staged = await self._download(ctx, "answer_key.pdf" if answer_key else "attachment.pdf")
            if staged is None:
                return
            if answer_key:
                payload.answer_key = staged
                header = f"✅ *Answer key received:* {staged.filename} 🔑"
            else:
                payload.pdf = staged
                header = f"✅ *PDF received:* {staged.filename}"
            await self._next_step(ctx, payload, header)
            return

        if ctx.text == "0":
            if answer_key:
                payload.auto_grade = False
                payload.answer_key = None
                header = "➡️ Answer key skipped. The assignment will be graded *manually*."
            else:
                payload.attach_pdf = False
                payload.pdf = None
                header = "➡️ PDF attachment skipped."
            await self._next_step(ctx, payload, header)
            return

        if is_cancel(ctx.text):
            await cancel_wizard(ctx, "Assignment creation cancelled")
            return
        await ctx.reply(prompt)

    async def _download(self, ctx: TurnContext, default_name: str) -> Optional[StagedFile]:
        data = await ctx.download_attachment()
        if not data:
            await ctx.reply("⚠️ Failed to download the file. Please send it again.")
            return None
        return StagedFile(data=data, filename=ctx.message.attachment_name or default_name,
                          mime_type=ctx.message.attachment_type or PDF_MIME)

    # ==================== CONFIRM_SAVE ====================

    async def _save(self, ctx: TurnContext, payload: CreationPayload):
        if payload.pdf_pending or payload.answer_key_pending:
            await self._next_step(ctx, payload, "📎 One more file is needed before saving.")
            return
        try:
            validate(payload)
        except ValidationError as e:
            await ctx.reply(f"⚠️ Incomplete fields: {', '.join(e.fields)}.\n\n"
                            "Fill them in, then type *1* to save.")
            return

        payload.step = CreationStep.CONFIRM_SAVE
        code = payload.code
        existing = await ctx.store.find_assignment_by_code(code)
        if existing is not None:
            await self._reject_duplicate(ctx, payload, DuplicateError(code, existing))
            return

        description = payload.description
        if payload.attach_pdf:
            description = f"{description}\n\n{PDF_REQUIRED_NOTE}"

        pdf_url = None
        if payload.pdf is not None:
            pdf_url = await ctx.services.storage.upload(
                payload.pdf.data, upload_name(code, payload.pdf), payload.pdf.mime_type)
        answer_key_url = None
        if payload.answer_key is not None:
            answer_key_url = await ctx.services.storage.upload(
                payload.answer_key.data,
                upload_name(code, payload.answer_key, prefix="key_", fallback_suffix="_key"),
                payload.answer_key.mime_type)

        try:
            created = await ctx.store.create_assignment(
                code=code,
                title=payload.title,
                description=description,
                class_name=payload.class_name,
                teacher_id=ctx.user.id,
                deadline=compute_deadline(payload.deadline_days),
                pdf_url=pdf_url,
                answer_key_url=answer_key_url,
            )
        except DuplicateError as e:
            await self._reject_duplicate(ctx, payload, e)
            return

        students = await ctx.store.list_students(created.class_name)
        await ctx.store.create_statuses(created.id, [s.id for s in students])
        ctx.state.enter_wizard(AfterCreatePayload(code=created.code, class_name=created.class_name))
        logger.info("📝 %s created assignment %s for %s (%d students)",
                    ctx.identity, created.code, created.class_name, len(students))

        grading = "*Automatic* 🤖" if created.auto_graded else "Manual"
        await ctx.reply(
            "✅ *Assignment created!*\n"
            f"• Code: *{created.code}*\n"
            f"• Title: {created.title}\n"
            f"• Class: {created.class_name}\n"
            f"• Grading: {grading}\n"
            f"• Deadline: {format_datetime(created.deadline, ctx.tz_name)}\n\n"
            "📌 *What next?*\n"
            f"*1.* 📣 Send it to class {created.class_name}\n"
            "*2.* 🏠 Back to the main menu"
        )

    async def _reject_duplicate(self, ctx: TurnContext, payload: CreationPayload, error: DuplicateError):
        logger.info("🚫 Duplicate assignment code %s from %s", error.code, ctx.identity)
        payload.code = None
        payload.step = CreationStep.COLLECTING_FIELDS
        await ctx.reply(conflict_text(error.existing, error.code, ctx.tz_name))


class AfterCreateWizard:
    async def handle(self, ctx: TurnContext, payload: AfterCreatePayload):
        choice = ctx.text
        if is_cancel(choice):
            await cancel_wizard(ctx, "Done")
            return
        if choice == "1":
            assignment = await ctx.store.find_assignment_by_code(payload.code)
            await finish_to_menu(ctx)
            if assignment is None:
                await ctx.reply(f"⚠️ Assignment {payload.code} was not found.")
                return
            await send_and_report(ctx, assignment, payload.class_name)
            return
        if choice == "2":
            await cancel_wizard(ctx, "Back to the main menu")
            return
        await ctx.reply("⚠️ Type *1* to send the assignment now or *2* to go back to the menu.")


assignment_creation_wizard = AssignmentCreationWizard()
after_create_wizard = AfterCreateWizard()
