"""
Grading Webhook
Posts a submission to the external grader, then polls the store for the result
in the background and notifies the student.
"""

import asyncio
import logging
from typing import Any, Optional, Set

import httpx

from core.config import CONFIG
from core.models import Assignment, Submission
from services.retry import Sleep
from services.transport import Transport, safe_send

logger = logging.getLogger(__name__)

GRADE_EMOJI = {"A": "🌟", "B": "⭐", "C": "✨", "D": "💫"}

GRADING_FAILED_TEXT = "⚠️ Automatic grading is unavailable right now. Your teacher will grade it manually."
GRADING_TIMEOUT_TEXT = ("⏱️ Grading is taking longer than usual. The result will come later, "
                        "check your submission history from time to time.")


def format_grade_message(submission: Submission) -> str:
    emoji = GRADE_EMOJI.get(str(submission.grade).upper(), "📊")
    return (
        "🎓 *AUTOMATIC GRADING RESULT*\n\n"
        f"{emoji} *Grade: {submission.grade}*\n"
        f"📊 *Score: {submission.score}/100*\n\n"
        f"💬 *Evaluation:*\n{submission.evaluation or 'No notes.'}\n\n"
        "Keep up the good work! 🚀"
    )


class GradingService:
    """
    Grading webhook client plus bounded result polling.

    schedule() returns immediately; the webhook call, the poll and the final
    notification run in a background task tracked in `pending`.
    """

    def __init__(self, store: Any, transport: Transport,
                 webhook_url: Optional[str] = None,
                 poll_interval: Optional[float] = None,
                 poll_max: Optional[float] = None,
                 timeout: Optional[float] = None,
                 sleep: Sleep = asyncio.sleep,
                 http_transport: Optional[httpx.AsyncBaseTransport] = None):
        self.store = store
        self.transport = transport
        self.webhook_url = webhook_url or CONFIG['webhook_url']
        self.poll_interval = poll_interval if poll_interval is not None else CONFIG['grading_poll_interval']
        self.poll_max = poll_max if poll_max is not None else CONFIG['grading_poll_max']
        self.timeout = timeout if timeout is not None else CONFIG['grading_timeout']
        self.sleep = sleep
        self.http_transport = http_transport
        self.pending: Set[asyncio.Task] = set()

    def schedule(self, submission: Submission, assignment: Assignment, identity: str) -> asyncio.Task:
        task = asyncio.create_task(self.grade_and_notify(submission, assignment, identity))
        self.pending.add(task)
        task.add_done_callback(self.pending.discard)
        return task

    async def wait_pending(self):
        if self.pending:
            await asyncio.gather(*list(self.pending))

    async def trigger(self, submission: Submission, assignment: Assignment) -> bool:
        payload = {
            "id": submission.id,
            "submissionId": submission.id,
            "studentId": submission.student_id,
            "assignmentId": assignment.id,
            "submissionUrl": submission.file_url,
            "pdfUrl": submission.file_url,
            "answerKeyUrl": assignment.answer_key_url,
        }
        logger.info("🤖 Triggering auto-grading for submission %s", submission.id)
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.http_transport) as client:
            response = await client.post(self.webhook_url, json=payload)
        if response.is_error:
            logger.warning("Grading webhook returned %s: %s", response.status_code, response.text)
            return False
        return True

    async def poll_result(self, assignment_id: int, student_id: int) -> Optional[Submission]:
        """Check the store every poll_interval seconds until graded or poll_max elapses."""
        elapsed = 0.0
        while elapsed < self.poll_max:
            await self.sleep(self.poll_interval)
            elapsed += self.poll_interval
            submission = await self.store.get_submission(assignment_id, student_id)
            if submission is not None and submission.graded:
                logger.info("✅ Grading result received for submission %s", submission.id)
                return submission
        logger.warning("⏱️ Grading timeout for assignment %s, student %s", assignment_id, student_id)
        return None

    async def grade_and_notify(self, submission: Submission, assignment: Assignment, identity: str):
        """Never raises; every outcome ends in one message to the student."""
        try:
            accepted = await self.trigger(submission, assignment)
        except httpx.HTTPError as e:
            logger.error("❌ Grading webhook call failed: %s", e)
            accepted = False
        if not accepted:
            await self.notify(identity, GRADING_FAILED_TEXT)
            return

        try:
            result = await self.poll_result(assignment.id, submission.student_id)
        except Exception:
            logger.error("❌ Polling for the grading result of submission %s failed",
                         submission.id, exc_info=True)
            result = None
        if result is None:
            await self.notify(identity, GRADING_TIMEOUT_TEXT)
        else:
            await self.notify(identity, format_grade_message(result))

    async def notify(self, identity: str, text: str):
        try:
            await safe_send(self.transport, identity, text)
        except Exception:
            logger.error("❌ Could not deliver the grading notice to %s", identity, exc_info=True)
