"""
Rule-based Entity Extractor
Pulls the assignment code, class identifier and relative date out of normalized text.
Pure pattern matching: stateless and deterministic.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from core.intent.rules import keyword_vocabulary

# Conversational words, menu verbs and file-name-ish nouns that look like codes
# once the text is upper-cased.
COMMON_WORDS = frozenset({
    # conversation (id)
    "kumpul", "kumpulkan", "mengumpulkan", "detail", "info", "tugas", "saya", "ingin",
    "mau", "status", "riwayat", "lihat", "cek", "ada", "yang", "apa", "tentang", "untuk",
    "dari", "dengan", "adalah", "ini", "itu", "guru", "siswa", "kelas", "kode", "judul",
    "deskripsi", "kapan", "tolong", "dong", "mohon", "terima", "kasih", "sudah", "belum",
    # conversation (en)
    "please", "thanks", "thank", "what", "when", "where", "which", "show", "want",
    "need", "with", "from", "about", "this", "that", "have", "task", "tasks",
    "assignment", "assignments", "class", "code", "title", "description", "student",
    "students", "teacher", "send", "list", "create", "submit", "history", "deadline",
    # greetings and bot name
    "halo", "hallo", "hai", "hey", "hei", "hello", "kinanti", "assalamualaikum", "help",
    "bantuan", "menu", "mulai", "start", "selamat", "pagi", "siang", "sore", "malam",
    "good", "morning", "afternoon", "evening",
    # feature verbs
    "buat", "tambah", "kirim", "rekap", "broadcast", "sebar", "umumkan", "bagikan",
    "daftar", "data", "gambar", "foto", "convert", "ubah", "report", "recap", "announce",
    # wizard commands
    "simpan", "batal", "cancel", "lewati", "skip", "selesai", "done", "tidak", "save",
    # file-name nouns
    "soal", "jawaban", "kunci", "ujian", "latihan", "materi", "modul", "buku", "uraian",
    "pilihan", "ganda", "essay", "dokumen", "file", "lampiran", "contoh", "hasil",
    "nilai", "test", "quiz", "ulangan", "praktik", "teori", "bunga", "hewan", "tumbuhan",
    "manusia", "alam", "dunia", "indonesia", "bahasa",
}) | keyword_vocabulary()

# Letters followed by digits, letter/digit groups joined by '-' or '_', or a bare
# all-caps word (length checked separately).
CODE_PATTERN = re.compile(r"\b([A-Z]{2,15}(?:\d+|[-_][A-Z0-9]+)*)\b")

# Grade level + 2-6 letter department + 1-2 digit section, e.g. "XII TKJ 2" or "xitkj2".
CLASS_PATTERN = re.compile(r"\b(x|xi|xii)\s*([a-z]{2,6})\s*(\d{1,2})\b", re.IGNORECASE)

# Strict stored form, used to validate form input.
CLASS_IDENTIFIER = re.compile(r"^(X|XI|XII)[A-Z]{2,8}\d{1,2}$")

CODE_ALIASES = ("kode", "kode_tugas", "assignment_code")


def normalize_class_name(raw: str) -> str:
    return re.sub(r"\s+", "", str(raw or "")).upper()


def is_valid_class_name(value: Optional[str]) -> bool:
    return bool(value) and bool(CLASS_IDENTIFIER.match(str(value).upper()))


def parse_relative_date(text: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """Map today / tomorrow / day-after-tomorrow (Indonesian or English) to a date."""
    now = now or datetime.now(timezone.utc)
    if re.search(r"\b(?:lusa|day after tomorrow)\b", text):
        return now + timedelta(days=2)
    if re.search(r"\b(?:besok|tomorrow)\b", text):
        return now + timedelta(days=1)
    if re.search(r"\b(?:hari ini|today)\b", text):
        return now
    return None


@dataclass(frozen=True)
class Entities:
    """Fixed-shape entity record."""
    code: Optional[str] = None
    class_name: Optional[str] = None
    date: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Canonical names plus the code aliases other layers may look up."""
        data: Dict[str, Any] = {
            "code": self.code,
            "class_name": self.class_name,
            "date": self.date,
        }
        for alias in CODE_ALIASES:
            data[alias] = self.code
        data["kelas"] = self.class_name
        return data


class EntityExtractor:
    """
    Regex entity extractor

    The first code candidate that survives the stop-word filter wins; there is
    no attempt to rank several candidates.
    """

    def __init__(self, stop_words: frozenset = COMMON_WORDS,
                 clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.stop_words = stop_words
        self.clock = clock

    def extract(self, text: str) -> Entities:
        return Entities(
            code=self._extract_code(text),
            class_name=self._extract_class(text),
            date=parse_relative_date(text, self.clock()),
        )

    def _extract_code(self, text: str) -> Optional[str]:
        for match in CODE_PATTERN.finditer(text.upper()):
            candidate = match.group(1).strip()
            if candidate.lower() in self.stop_words:
                continue
            # Plain words need at least 4 letters to count as a code
            if not re.search(r"[\d\-_]", candidate) and len(candidate) < 4:
                continue
            if CLASS_IDENTIFIER.match(candidate):
                continue
            return candidate
        return None

    def _extract_class(self, text: str) -> Optional[str]:
        match = CLASS_PATTERN.search(text)
        if not match:
            return None
        grade, department, section = match.groups()
        return normalize_class_name(f"{grade}{department}{section}")


# Singleton instance for easy import
entity_extractor = EntityExtractor()
