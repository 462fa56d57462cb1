"""Shared pytest fixtures for the assignment bot test suite.

These fixtures provide:
* A seeded in-memory store (one teacher, three students in two classes)
* An outbox transport that records every send
* Fake file storage and grading collaborators
* A no-op sleep so throttle, retry and poll loops run instantly
* A wired UnifiedPipelineController plus helpers to send it messages
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import pytest

from app.unified_pipeline import UnifiedPipelineController
from core.config import CONFIG
from core.errors import TransportQuirkError
from services.broadcaster import ThrottledBroadcaster
from services.container import BotServices
from services.report import ExcelReportGenerator
from services.retry import RetryingStore
from services.store import InMemoryStore
from services.transport import PDF_MIME, Content, InboundMessage, OutboundDocument

TEACHER = "6281100000001"
STUDENT = "6281100000002"
STUDENT2 = "6281100000003"
STUDENT3 = "6281100000004"

CLASS = "XIITKJ2"
OTHER_CLASS = "XRPL1"


async def no_sleep(seconds: float) -> None:
    return None


class RecordingSleep:
    """Sleep stand-in that records the requested delays."""

    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class OutboxTransport:
    """
    Transport that records every send instead of delivering it.

    `quirk_for` makes sends to the listed identities raise TransportQuirkError
    after recording them.
    """

    def __init__(self, quirk_for: Optional[set] = None) -> None:
        self.sent: List[Tuple[str, Content]] = []
        self.quirk_for = set(quirk_for or ())

    async def send(self, identity: str, content: Content) -> None:
        self.sent.append((identity, content))
        if identity in self.quirk_for:
            raise TransportQuirkError(f"send to {identity} returned no ack")

    async def download_attachment(self, message: InboundMessage) -> Optional[bytes]:
        if not message.has_attachment:
            return None
        return message.attachment_data

    def texts(self, identity: Optional[str] = None) -> List[str]:
        return [content for to, content in self.sent
                if isinstance(content, str) and (identity is None or to == identity)]

    def documents(self, identity: Optional[str] = None) -> List[OutboundDocument]:
        return [content for to, content in self.sent
                if isinstance(content, OutboundDocument) and (identity is None or to == identity)]

    def last_text(self, identity: Optional[str] = None) -> Optional[str]:
        texts = self.texts(identity)
        return texts[-1] if texts else None


class FakeStorage:
    def __init__(self) -> None:
        self.uploads: List[Dict[str, Any]] = []

    async def upload(self, data: bytes, filename: str, mime_type: str) -> str:
        self.uploads.append({"data": data, "filename": filename, "mime_type": mime_type})
        return f"https://files.test/{filename}"


class FakeGrading:
    """Records schedule() calls instead of starting background tasks."""

    def __init__(self) -> None:
        self.scheduled: List[tuple] = []

    def schedule(self, submission, assignment, identity):
        self.scheduled.append((submission, assignment, identity))


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> InMemoryStore:
    """Store seeded with one teacher and three students."""
    seeded = InMemoryStore()
    seeded.add_user(TEACHER, "Bu Sari", "guru")
    seeded.add_user(STUDENT, "Andi", "siswa", CLASS)
    seeded.add_user(STUDENT2, "Budi", "student", CLASS)
    seeded.add_user(STUDENT3, "Citra", "student", OTHER_CLASS)
    return seeded


@pytest.fixture
def transport() -> OutboxTransport:
    return OutboxTransport()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def grading() -> FakeGrading:
    return FakeGrading()


@pytest.fixture
def make_services(storage, grading):
    """Factory: BotServices around any store/transport, with instant sleeps."""

    def _factory(store, transport, sleep=no_sleep, **config) -> BotServices:
        cfg = dict(CONFIG)
        cfg.update(bot_name="Kinanti Bot", max_list_items=20, session_idle_timeout=None,
                   registration_url="https://kinantiku.com", admin_contact="wa.me/620000")
        cfg.update(config)
        return BotServices(
            store=RetryingStore(store, attempts=3, backoff=1.0, sleep=sleep),
            transport=transport,
            storage=storage,
            reports=ExcelReportGenerator(),
            grading=grading,
            broadcaster=ThrottledBroadcaster(transport, batch_size=20, delay_min=0.0,
                                             delay_max=0.0, batch_pause=0.0, sleep=no_sleep),
            config=cfg,
        )

    return _factory


@pytest.fixture
def services(make_services, store, transport) -> BotServices:
    return make_services(store, transport)


@pytest.fixture
def make_pipeline(make_services, store, transport):
    """Factory: pipeline over a custom store, transport or sleep."""

    def _factory(custom_store=None, custom_transport=None, sleep=no_sleep) -> UnifiedPipelineController:
        return UnifiedPipelineController(
            make_services(custom_store if custom_store is not None else store,
                          custom_transport if custom_transport is not None else transport,
                          sleep=sleep))

    return _factory


@pytest.fixture
def pipeline(services) -> UnifiedPipelineController:
    return UnifiedPipelineController(services)


# ---------------------------------------------------------------------------
# Message helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def say(pipeline):
    """Send a text message through the pipeline; returns the replies."""

    async def _say(sender: str, text: str) -> List[str]:
        return await pipeline.handle_message(InboundMessage(sender=sender, text=text))

    return _say


@pytest.fixture
def send_file(pipeline):
    """Send an attachment (a PDF unless mime_type says otherwise)."""

    async def _send(sender: str, filename: str = "work.pdf", mime_type: str = PDF_MIME,
                    data: bytes = b"%PDF-1.4 test", text: str = "") -> List[str]:
        return await pipeline.handle_message(InboundMessage(
            sender=sender, text=text, has_attachment=True, attachment_type=mime_type,
            attachment_name=filename, attachment_data=data))

    return _send


@pytest.fixture
def state_of(pipeline):
    def _state(identity: str):
        return pipeline.state_manager.get(identity)

    return _state


@pytest.fixture
def seed_assignment(store):
    """Create an assignment owned by the seeded teacher."""

    async def _seed(code: str = "BD-03", class_name: str = CLASS, title: str = "Algebra drills",
                    deadline: Optional[datetime] = None, answer_key_url: Optional[str] = None,
                    pdf_url: Optional[str] = None):
        teacher = await store.find_user_by_phone(TEACHER)
        return await store.create_assignment(
            code=code, title=title, description="Exercises 1-10", class_name=class_name,
            teacher_id=teacher.id,
            deadline=deadline or datetime.now(timezone.utc) + timedelta(days=3),
            pdf_url=pdf_url, answer_key_url=answer_key_url,
        )

    return _seed
