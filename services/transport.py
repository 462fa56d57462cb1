"""
Message Transport
Inbound event shape, the outbound send contract and identity normalization.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Protocol, Union

from core.errors import TransportQuirkError

logger = logging.getLogger(__name__)

PDF_MIME = "application/pdf"


@dataclass
class InboundMessage:
    sender: str
    text: str = ""
    has_attachment: bool = False
    attachment_type: Optional[str] = None
    attachment_name: Optional[str] = None
    attachment_data: Optional[bytes] = None

    @property
    def has_pdf(self) -> bool:
        return self.has_attachment and is_pdf(self.attachment_type)


@dataclass
class OutboundDocument:
    data: bytes
    filename: str
    mime_type: str
    caption: str = ""


Content = Union[str, OutboundDocument]


class Transport(Protocol):
    async def send(self, identity: str, content: Content) -> None:
        ...

    async def download_attachment(self, message: InboundMessage) -> Optional[bytes]:
        ...


class LogTransport:
    """
    Transport for the local chat surfaces: replies travel back in the HTTP/ws
    response, so a send is only logged. Nothing is kept in memory.
    """

    async def send(self, identity: str, content: Content) -> None:
        if isinstance(content, OutboundDocument):
            logger.info("📤 -> %s [document %s, %d bytes]", identity, content.filename, len(content.data))
        else:
            logger.info("📤 -> %s: %s", identity, content[:80])

    async def download_attachment(self, message: InboundMessage) -> Optional[bytes]:
        if not message.has_attachment:
            return None
        return message.attachment_data


async def safe_send(transport: Transport, identity: str, content: Content) -> bool:
    """Send, treating the known benign transport anomaly as delivered."""
    try:
        await transport.send(identity, content)
    except TransportQuirkError as e:
        logger.warning("⚠️ Transport quirk sending to %s, assuming delivered: %s", identity, e)
    return True


def is_pdf(mime_type: Optional[str]) -> bool:
    return bool(mime_type) and mime_type.strip().lower() == PDF_MIME


def is_group(raw_sender: str) -> bool:
    return str(raw_sender or "").endswith("@g.us")


def normalize_identity(raw: str) -> str:
    """
    Reduce a sender id or phone number to bare digits with the 62 country code.

    >>> normalize_identity("081234567890@c.us")
    '6281234567890'
    >>> normalize_identity("+62 812-3456-7890")
    '6281234567890'
    """
    value = re.sub(r"@(c\.us|lid|s\.whatsapp\.net)$", "", str(raw or "").strip(), flags=re.IGNORECASE)
    digits = re.sub(r"\D", "", value)
    if digits.startswith("0"):
        digits = "62" + digits[1:]
    return digits


def to_jid(identity: str) -> str:
    return f"{normalize_identity(identity)}@c.us"
