"""
Throttled Broadcaster
Outbound fan-out with a fixed batch size, a random delay between messages and
a fixed pause between batches, so a class-wide send does not trip the
transport's abuse detection.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Iterable, List, Optional, Set, Tuple

from core.config import CONFIG
from core.models import format_datetime
from services.retry import Sleep
from services.transport import Content, Transport, safe_send

logger = logging.getLogger(__name__)


@dataclass
class BroadcastResult:
    sent: int = 0
    failed: int = 0
    total: int = 0

    def to_dict(self) -> dict:
        return {"sent": self.sent, "failed": self.failed, "total": self.total}


class ThrottledBroadcaster:
    def __init__(self, transport: Transport,
                 batch_size: Optional[int] = None,
                 delay_min: Optional[float] = None,
                 delay_max: Optional[float] = None,
                 batch_pause: Optional[float] = None,
                 sleep: Sleep = asyncio.sleep,
                 rng: Optional[random.Random] = None):
        self.transport = transport
        self.batch_size = batch_size or CONFIG['broadcast_batch_size']
        self.delay_min = delay_min if delay_min is not None else CONFIG['broadcast_delay_min']
        self.delay_max = delay_max if delay_max is not None else CONFIG['broadcast_delay_max']
        self.batch_pause = batch_pause if batch_pause is not None else CONFIG['broadcast_batch_pause']
        self.sleep = sleep
        self.rng = rng or random.Random()
        self.pending: Set[asyncio.Task] = set()

    def delay_before(self, index: int) -> float:
        """Seconds to wait before sending message number `index` (0-based)."""
        if index == 0:
            return 0.0
        if index % self.batch_size == 0:
            return self.batch_pause
        return self.rng.uniform(self.delay_min, self.delay_max)

    async def broadcast(self, messages: Iterable[Tuple[str, Content]]) -> BroadcastResult:
        """
        Send each (identity, content) pair in order.

        A failed recipient is counted and skipped; it never aborts the batch.
        """
        items = list(messages)
        result = BroadcastResult(total=len(items))
        for index, (identity, content) in enumerate(items):
            delay = self.delay_before(index)
            if delay:
                if index % self.batch_size == 0:
                    logger.info("⏸️ Batch of %d sent, pausing %.0fs", self.batch_size, delay)
                await self.sleep(delay)
            try:
                await safe_send(self.transport, identity, content)
                result.sent += 1
            except Exception as e:
                result.failed += 1
                logger.error("❌ Broadcast to %s failed: %s", identity, e)

        logger.info("📢 Broadcast done: %d sent, %d failed, %d total",
                    result.sent, result.failed, result.total)
        return result

    async def send_same(self, identities: Iterable[str], content: Content) -> BroadcastResult:
        return await self.broadcast((identity, content) for identity in identities)

    def schedule(self, identities: Iterable[str], content: Content,
                 on_done: Optional[Callable[[BroadcastResult], Awaitable[None]]] = None) -> asyncio.Task:
        """Run send_same in a background task tracked in `pending`; on_done gets the result."""
        task = asyncio.create_task(self._run(list(identities), content, on_done))
        self.pending.add(task)
        task.add_done_callback(self.pending.discard)
        return task

    async def wait_pending(self):
        if self.pending:
            await asyncio.gather(*list(self.pending))

    async def _run(self, identities: List[str], content: Content,
                   on_done: Optional[Callable[[BroadcastResult], Awaitable[None]]]):
        try:
            result = await self.send_same(identities, content)
            if on_done is not None:
                await on_done(result)
        except Exception:
            logger.error("❌ Background broadcast failed", exc_info=True)


def format_assignment_message(code: str, title: Optional[str], deadline: Optional[datetime],
                              pdf_url: Optional[str] = None, teacher_name: Optional[str] = None,
                              tz_name: str = "Asia/Jakarta") -> str:
    """New-assignment announcement sent to every student of the class."""
    lines = ["📢 *New assignment!*"]
    if teacher_name:
        lines.append(f"👩‍🏫 *Teacher:* {teacher_name}")
    lines += [
        f"🔖 *Code:* {code}",
        f"📚 *Title:* {title or '-'}",
        f"🗓️ *Deadline:* {format_datetime(deadline, tz_name)}",
        f"📎 *Teacher's PDF:* {pdf_url or '-'}",
        "",
        "🧭 *How to submit:*",
        f"1) Reply *submit {code}* (or open the menu, choose 3, then pick {code})",
        "2) Attach your work as a *PDF*",
        "3) Wait for the ✅ confirmation",
    ]
    return "\n".join(lines)
