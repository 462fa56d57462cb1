"""
Report Generator
Builds the per-class assignment recap workbook (one row per student).
"""

import logging
from datetime import datetime, timezone
from io import BytesIO
from typing import Any, Dict, List, Protocol

import pandas as pd

from core.models import Assignment, Progress, format_datetime

logger = logging.getLogger(__name__)

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

REPORT_COLUMNS = [
    "Class", "Student", "Phone", "Code", "Title", "Deadline", "Status",
    "Submitted At", "File URL", "Evaluation", "Grade", "Score",
]


class ReportGenerator(Protocol):
    def build_report(self, rows: List[Dict[str, Any]]) -> bytes:
        ...


class ExcelReportGenerator:
    """pandas DataFrame -> .xlsx bytes via openpyxl"""

    def __init__(self, sheet_name: str = "Recap"):
        self.sheet_name = sheet_name

    def build_report(self, rows: List[Dict[str, Any]]) -> bytes:
        df = pd.DataFrame(rows, columns=REPORT_COLUMNS)
        buffer = BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            df.to_excel(writer, index=False, sheet_name=self.sheet_name)
        logger.debug("Built report workbook with %d rows", len(df))
        return buffer.getvalue()


async def collect_report_rows(store, assignment: Assignment, class_name: str,
                              tz_name: str = "Asia/Jakarta") -> List[Dict[str, Any]]:
    """One row per student of `class_name`, submitted or not."""
    students = await store.list_students(class_name)
    statuses = await store.statuses_for_assignment(assignment.id)
    submissions = {s.student_id: s for s in await store.list_submissions(assignment.id)}

    rows = []
    for student in students:
        submission = submissions.get(student.id)
        done = statuses.get(student.id) == Progress.DONE or submission is not None
        rows.append({
            "Class": class_name,
            "Student": student.name,
            "Phone": student.phone,
            "Code": assignment.code,
            "Title": assignment.title,
            "Deadline": format_datetime(assignment.deadline, tz_name, empty="-"),
            "Status": "Submitted" if done else "Not submitted",
            "Submitted At": format_datetime(submission.submitted_at, tz_name, empty="-") if submission else "-",
            "File URL": submission.file_url if submission else "-",
            "Evaluation": (submission.evaluation or "-") if submission else "-",
            "Grade": (submission.grade or "-") if submission else "-",
            "Score": submission.score if submission and submission.score is not None else "-",
        })
    return rows


def report_filename(code: str, class_name: str) -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    return f"recap_{code}_{class_name}_{stamp}.xlsx"
