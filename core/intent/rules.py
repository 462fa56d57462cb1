"""
Intent Rule Table
Declarative keyword / required-entity / boost rules consumed by the intent classifier.

The order of INTENT_RULES is the tie-break priority: when two intents reach
the same score, the one declared first wins.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Pattern, Tuple


class Intent(str, Enum):
    GREETING_HELP = "greeting_help"

    TEACHER_CREATE_ASSIGNMENT = "teacher_create_assignment"
    TEACHER_BROADCAST = "teacher_broadcast"
    TEACHER_REPORT = "teacher_report"
    TEACHER_ROSTER = "teacher_roster"
    TEACHER_HELP = "teacher_help"

    STUDENT_DETAIL = "student_detail"
    STUDENT_SUBMIT = "student_submit"
    STUDENT_MY_TASKS = "student_my_tasks"
    STUDENT_STATUS = "student_status"
    STUDENT_DEADLINE = "student_deadline"
    STUDENT_HELP = "student_help"

    # Shared by both roles
    IMAGE_TO_PDF = "image_to_pdf"

    FALLBACK = "fallback"

    # Wizard-owned intents; never produced by the classifier.
    TEACHER_AFTER_CREATE = "teacher_after_create"
    TEACHER_BROADCAST_WIZARD = "teacher_broadcast_wizard"
    TEACHER_REPORT_WIZARD = "teacher_report_wizard"
    TEACHER_ROSTER_WIZARD = "teacher_roster_wizard"
    STUDENT_SUBMIT_WIZARD = "student_submit_wizard"
    STUDENT_STATUS_WIZARD = "student_status_wizard"

    @property
    def teacher_only(self) -> bool:
        return self.value.startswith("teacher_")

    @property
    def student_only(self) -> bool:
        return self.value.startswith("student_")


@dataclass(frozen=True)
class BoostRule:
    """
    Extra weight when `pattern` is found; optionally only when a code entity exists.

    A tie_break boost only counts for a rule that already scored above zero,
    so it can order real matches but never creates one.
    """
    pattern: Pattern
    weight: float
    requires_code: bool = False
    tie_break: bool = False


@dataclass(frozen=True)
class IntentRule:
    intent: Intent
    keywords: Tuple[str, ...] = ()
    required_entities: Tuple[str, ...] = ()
    boosts: Tuple[BoostRule, ...] = ()


def _boost(pattern: str, weight: float, requires_code: bool = False, tie_break: bool = False) -> BoostRule:
    return BoostRule(re.compile(pattern), weight, requires_code, tie_break)


# Nudge for teacher intents that already matched when a generic action verb appears.
TEACHER_VERB_BOOST = _boost(r"kirim|penugasan|rekap|broadcast|siswa|student", 0.2, tie_break=True)

REQUIRED_ENTITY_WEIGHT = 1.5
CONFIDENCE_SCALE = 3.0


INTENT_RULES: Tuple[IntentRule, ...] = (
    IntentRule(
        Intent.GREETING_HELP,
        keywords=("halo", "hai", "hello", "hi", "hey", "help", "bantuan", "menu",
                  "assalamualaikum", "selamat pagi", "good morning"),
        boosts=(_boost(r"\b(?:halo|hai|hey|hei|hello|hi|kinanti|help|bantuan|menu|assalamualaikum)\b", 3),),
    ),
    IntentRule(
        Intent.TEACHER_CREATE_ASSIGNMENT,
        keywords=("buat tugas", "tugas baru", "tambah tugas", "penugasan",
                  "create task", "new task", "create assignment", "new assignment"),
        boosts=(
            _boost(r"buat tugas|penugasan|tugas baru|tambah tugas|create task|new task"
                   r"|create assignment|new assignment|add task", 4),
            TEACHER_VERB_BOOST,
        ),
    ),
    IntentRule(
        Intent.TEACHER_BROADCAST,
        keywords=("kirim tugas", "broadcast", "sebar tugas", "umumkan", "send task", "announce"),
        boosts=(_boost(r"kirim tugas|broadcast|sebar tugas|umumkan|send task|announce", 3),
                TEACHER_VERB_BOOST),
    ),
    IntentRule(
        Intent.TEACHER_REPORT,
        keywords=("rekap", "rekap excel", "report", "recap"),
        boosts=(_boost(r"rekap|report|recap", 3), TEACHER_VERB_BOOST),
    ),
    IntentRule(
        Intent.TEACHER_ROSTER,
        keywords=("list siswa", "daftar siswa", "data siswa", "student list", "list students"),
        boosts=(_boost(r"list siswa|daftar siswa|data siswa|student list|list students", 3),
                TEACHER_VERB_BOOST),
    ),
    IntentRule(
        Intent.TEACHER_HELP,
        keywords=("panduan guru", "teacher guide"),
        boosts=(TEACHER_VERB_BOOST,),
    ),
    IntentRule(
        Intent.STUDENT_DETAIL,
        keywords=("detail", "info", "detail tugas"),
        required_entities=("code",),
        boosts=(_boost(r"detail|info", 2, requires_code=True),),
    ),
    IntentRule(
        Intent.STUDENT_SUBMIT,
        keywords=("kumpul", "kumpulkan", "kumpul tugas", "submit", "submit task"),
        required_entities=("code",),
        boosts=(_boost(r"kumpul|submit", 2), _boost(r"kumpul|submit", 2, requires_code=True)),
    ),
    IntentRule(
        Intent.STUDENT_MY_TASKS,
        keywords=("tugas saya", "daftar tugas", "lihat tugas", "list tugas", "tugas belum",
                  "my tasks", "my assignments"),
    ),
    IntentRule(
        Intent.STUDENT_STATUS,
        keywords=("status", "status tugas", "riwayat", "riwayat tugas", "history"),
    ),
    IntentRule(
        Intent.STUDENT_DEADLINE,
        keywords=("deadline", "kapan", "tenggat", "due"),
        required_entities=("code",),
    ),
    IntentRule(
        Intent.STUDENT_HELP,
        keywords=("panduan siswa", "student guide"),
    ),
    IntentRule(
        Intent.IMAGE_TO_PDF,
        keywords=("gambar ke pdf", "foto ke pdf", "image to pdf", "photo to pdf", "convert pdf"),
        boosts=(_boost(r"(?:gambar|foto|image|photo|picture)s?\s+(?:ke|to|jadi)\s+pdf|convert\w*\s+(?:to\s+)?pdf", 3),),
    ),
)


def keyword_vocabulary() -> frozenset:
    """Every single word used by a keyword phrase in the rule table."""
    words = set()
    for rule in INTENT_RULES:
        for phrase in rule.keywords:
            words.update(phrase.split())
    return frozenset(words)
