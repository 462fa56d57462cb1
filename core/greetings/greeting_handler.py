"""
Greeting Handler
Handles greetings, role menus and help text directly, without running the
classifier. A greeting from a registered user opens that user's numeric menu.
"""

import random
import re
from typing import Dict, Optional

from core.intent.rules import Intent
from core.models import Role, User
from core.state.state_manager import MenuMode

GREETING_PATTERN = re.compile(
    r"^(halo|hai|hey|hei|mulai|start|menu|hello|hi|kinanti|assalamualaikum)\b",
    re.IGNORECASE,
)

# Numeric menu choices per role. "0" is the reserved exit choice.
TEACHER_MENU: Dict[str, Intent] = {
    "1": Intent.TEACHER_CREATE_ASSIGNMENT,
    "2": Intent.TEACHER_BROADCAST,
    "3": Intent.TEACHER_REPORT,
    "4": Intent.TEACHER_ROSTER,
    "5": Intent.IMAGE_TO_PDF,
    "6": Intent.TEACHER_HELP,
}

STUDENT_MENU: Dict[str, Intent] = {
    "1": Intent.STUDENT_MY_TASKS,
    "2": Intent.STUDENT_STATUS,
    "3": Intent.STUDENT_SUBMIT,
    "4": Intent.IMAGE_TO_PDF,
    "5": Intent.STUDENT_HELP,
}

EXIT_CHOICE = "0"


class GreetingHandler:
    """
    Fast greeting and menu text handler

    Everything here is static text keyed by role; no store access.
    """

    TEACHER_MENU_TEXT = (
        "*1.* 📝 Create assignment\n"
        "*2.* 📢 Broadcast assignment\n"
        "*3.* 📊 Assignment report (Excel)\n"
        "*4.* 👥 Student roster\n"
        "*5.* 🖼️ Image to PDF\n"
        "*6.* ❓ Help\n"
        "*0.* 🚪 Exit"
    )

    STUDENT_MENU_TEXT = (
        "*1.* 📚 My open assignments\n"
        "*2.* ✅ Submission history\n"
        "*3.* 📤 Submit an assignment\n"
        "*4.* 🖼️ Image to PDF\n"
        "*5.* ❓ Help\n"
        "*0.* 🚪 Exit"
    )

    # Short encouragement lines appended to the student greeting
    QUOTES = [
        "Learning is a marathon, not a sprint. Slow but steady! 🏃",
        "Every day is a chance to be better than yesterday. ✨",
        "Don't be afraid of mistakes, that's how you level up. 🎮",
        "Little by little, a little becomes a lot. Keep going! ⛰️",
    ]

    TEACHER_HELP = (
        "📘 *Teacher guide*\n\n"
        "• *create task* / *buat tugas* starts the assignment form\n"
        "• *broadcast* / *kirim tugas* sends an assignment to a class\n"
        "• *report <CODE>* / *rekap <CODE>* builds the Excel recap\n"
        "• *student list* / *daftar siswa* shows a class roster\n"
        "• *image to pdf* / *gambar ke pdf* merges photos into one PDF\n"
        "• *menu* opens the numbered menu\n\n"
        "Inside any list, type the number of your choice or *0* to cancel."
    )

    STUDENT_HELP = (
        "📗 *Student guide*\n\n"
        "• *my tasks* / *tugas saya* lists open assignments\n"
        "• *detail <CODE>* shows one assignment\n"
        "• *submit <CODE>* / *kumpul <CODE>* then send the PDF\n"
        "• *status* / *riwayat* shows submitted work and grades\n"
        "• *image to pdf* / *gambar ke pdf* turns photos of your work into a PDF\n"
        "• *menu* opens the numbered menu\n\n"
        "Inside any list, type the number of your choice or *0* to cancel."
    )

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    @staticmethod
    def is_greeting(text: str) -> bool:
        return bool(GREETING_PATTERN.match((text or "").strip()))

    @staticmethod
    def menu_mode_for(role: Role) -> MenuMode:
        return MenuMode.TEACHER_MENU if role == Role.TEACHER else MenuMode.STUDENT_MENU

    @staticmethod
    def menu_choices(mode: MenuMode) -> Dict[str, Intent]:
        return TEACHER_MENU if mode == MenuMode.TEACHER_MENU else STUDENT_MENU

    def menu_text(self, role: Role) -> str:
        return self.TEACHER_MENU_TEXT if role == Role.TEACHER else self.STUDENT_MENU_TEXT

    def greeting_text(self, user: User, bot_name: str = "Kinanti Bot") -> str:
        """Greeting plus the role menu."""
        if user.role == Role.TEACHER:
            return (f"👋 Hello, {user.name}! I'm {bot_name}, your teaching assistant.\n\n"
                    f"What would you like to do?\n\n{self.TEACHER_MENU_TEXT}")
        quote = self.rng.choice(self.QUOTES)
        return (f"👋 Hi, {user.name}! I'm {bot_name}.\n💬 _{quote}_\n\n"
                f"What would you like to do?\n\n{self.STUDENT_MENU_TEXT}")

    def help_text(self, role: Role) -> str:
        menu = self.menu_text(role)
        guide = self.TEACHER_HELP if role == Role.TEACHER else self.STUDENT_HELP
        return f"{guide}\n\n{menu}"

    def invalid_choice_text(self, mode: MenuMode) -> str:
        highest = len(self.menu_choices(mode))
        return f"⚠️ Please type a number 1-{highest}, or 0 to exit."

    @staticmethod
    def exit_text() -> str:
        return "👋 Menu closed. Type *menu* whenever you need me again."

    @staticmethod
    def unregistered_text(registration_url: str, admin_contact: str) -> str:
        return (
            "🙏 Sorry, your number is not registered yet.\n\n"
            f"Register at {registration_url}\n"
            f"or contact the admin: {admin_contact}"
        )

    @staticmethod
    def forbidden_text(required: str) -> str:
        return f"⛔ That feature is only available for {required}s."

    def fallback_text(self, role: Role) -> str:
        if role == Role.TEACHER:
            hint = "Try *create task*, *broadcast*, *report <CODE>* or *student list*."
        else:
            hint = "Try *my tasks*, *detail <CODE>*, *submit <CODE>* or *status*."
        return f"🤔 I didn't catch that. {hint}\n\n{self.menu_text(role)}"


# Create singleton instance for easy import
greeting_handler = GreetingHandler()
