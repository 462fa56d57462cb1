"""
Image to PDF
Merges photos into one PDF, one A4 page per image, scaled to fit inside the
margins and centred. Drawing runs in a worker thread.
"""

import asyncio
import logging
from io import BytesIO
from typing import Sequence, Tuple

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import cm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from core.errors import ValidationError

logger = logging.getLogger(__name__)

IMAGE_MIME_PREFIX = "image/"
MARGIN = 1 * cm


def is_image(mime_type) -> bool:
    return bool(mime_type) and mime_type.strip().lower().startswith(IMAGE_MIME_PREFIX)


def read_image(data: bytes) -> ImageReader:
    try:
        reader = ImageReader(BytesIO(data))
        reader.getSize()
    except Exception as e:
        raise ValidationError(f"the file is not a readable image ({e})") from e
    return reader


def fit(image_size: Tuple[int, int], box: Tuple[float, float]) -> Tuple[float, float]:
    """Largest (width, height) with the image's aspect ratio that fits in `box`."""
    iw, ih = image_size
    bw, bh = box
    scale = min(bw / iw, bh / ih)
    return iw * scale, ih * scale


def render_pdf(images: Sequence[bytes], title: str = "Images") -> bytes:
    if not images:
        raise ValidationError("no images to convert", fields=["images"])

    width, height = A4
    box = (width - 2 * MARGIN, height - 2 * MARGIN)
    out = BytesIO()
    c = canvas.Canvas(out, pagesize=A4)
    c.setTitle(title)
    for data in images:
        reader = read_image(data)
        w, h = fit(reader.getSize(), box)
        c.drawImage(reader, (width - w) / 2, (height - h) / 2, width=w, height=h,
                    preserveAspectRatio=True, mask='auto')
        c.showPage()
    c.save()
    return out.getvalue()


async def check_image(data: bytes) -> None:
    """Raise ValidationError unless `data` decodes as an image."""
    await asyncio.to_thread(read_image, data)


async def images_to_pdf(images: Sequence[bytes], title: str = "Images") -> bytes:
    pdf = await asyncio.to_thread(render_pdf, list(images), title)
    logger.info("🖼️ Converted %d image(s) to a %d byte PDF", len(images), len(pdf))
    return pdf
