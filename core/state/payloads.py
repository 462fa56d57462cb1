"""
Wizard Payloads
One explicit payload type per wizard kind. A conversation carries at most one.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, List, Optional, Union

from core.intent.rules import Intent


class CreationStep(str, Enum):
    COLLECTING_FIELDS = "COLLECTING_FIELDS"
    AWAITING_PDF = "AWAITING_PDF"
    AWAITING_ANSWER_KEY = "AWAITING_ANSWER_KEY"
    CONFIRM_SAVE = "CONFIRM_SAVE"


class ReportStep(str, Enum):
    PICK_ASSIGNMENT = "PICK_ASSIGNMENT"
    PICK_CLASS = "PICK_CLASS"


class SubmissionStep(str, Enum):
    PICK_ASSIGNMENT = "PICK_ASSIGNMENT"
    AWAITING_FILE = "AWAITING_FILE"


@dataclass
class StagedFile:
    """Attachment received from the chat, held until the wizard uploads it."""
    data: bytes
    filename: str
    mime_type: str = "application/pdf"


@dataclass
class AssignmentChoice:
    """One numbered line in a pick-by-number list."""
    assignment_id: int
    code: str
    title: str = ""
    class_name: str = ""


@dataclass
class CreationPayload:
    intent: ClassVar[Intent] = Intent.TEACHER_CREATE_ASSIGNMENT

    step: CreationStep = CreationStep.COLLECTING_FIELDS
    code: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    attach_pdf: Optional[bool] = None
    auto_grade: Optional[bool] = None
    deadline_days: Optional[int] = None
    class_name: Optional[str] = None
    pdf: Optional[StagedFile] = None
    answer_key: Optional[StagedFile] = None

    @property
    def pdf_pending(self) -> bool:
        return bool(self.attach_pdf) and self.pdf is None

    @property
    def answer_key_pending(self) -> bool:
        return bool(self.auto_grade) and self.answer_key is None


@dataclass
class AfterCreatePayload:
    intent: ClassVar[Intent] = Intent.TEACHER_AFTER_CREATE

    code: str = ""
    class_name: str = ""


@dataclass
class BroadcastPayload:
    intent: ClassVar[Intent] = Intent.TEACHER_BROADCAST_WIZARD

    choices: List[AssignmentChoice] = field(default_factory=list)


@dataclass
class ReportPayload:
    intent: ClassVar[Intent] = Intent.TEACHER_REPORT_WIZARD

    step: ReportStep = ReportStep.PICK_ASSIGNMENT
    choices: List[AssignmentChoice] = field(default_factory=list)
    code: Optional[str] = None


@dataclass
class RosterPayload:
    intent: ClassVar[Intent] = Intent.TEACHER_ROSTER_WIZARD

    classes: List[str] = field(default_factory=list)


@dataclass
class SubmissionPayload:
    intent: ClassVar[Intent] = Intent.STUDENT_SUBMIT_WIZARD

    step: SubmissionStep = SubmissionStep.PICK_ASSIGNMENT
    choices: List[AssignmentChoice] = field(default_factory=list)
    assignment_id: Optional[int] = None
    assignment_code: Optional[str] = None


@dataclass
class StatusHistoryPayload:
    intent: ClassVar[Intent] = Intent.STUDENT_STATUS_WIZARD

    choices: List[AssignmentChoice] = field(default_factory=list)


@dataclass
class ImageToPdfPayload:
    intent: ClassVar[Intent] = Intent.IMAGE_TO_PDF

    images: List[StagedFile] = field(default_factory=list)


WizardPayload = Union[
    CreationPayload,
    AfterCreatePayload,
    BroadcastPayload,
    ReportPayload,
    RosterPayload,
    SubmissionPayload,
    StatusHistoryPayload,
    ImageToPdfPayload,
]
