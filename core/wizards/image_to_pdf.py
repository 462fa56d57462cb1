"""
Image to PDF wizard
Photos arrive one message at a time; *done* merges them, in arrival order,
into a single PDF that is sent back. Open to teachers and students.
"""

import logging
import re
from datetime import datetime, timezone

from core.errors import ValidationError
from core.models import Role
from core.state.payloads import ImageToPdfPayload, StagedFile
from core.wizards.base import TurnContext, cancel_wizard, finish_to_menu, is_cancel
from services.pdf_converter import check_image, images_to_pdf, is_image
from services.transport import PDF_MIME

logger = logging.getLogger(__name__)

DONE_WORDS = re.compile(r"^(?:selesai|done|finish|jadikan pdf)$", re.IGNORECASE)


def start_text(limit: int) -> str:
    return ("🖼️ *Image to PDF*\n\n"
            f"Send your photos one by one (up to {limit}). Pages follow the order you send them.\n"
            "Type *done* / *selesai* when finished.\n\n*0.* ❌ Cancel")


class ImageToPdfWizard:
    async def start(self, ctx: TurnContext):
        ctx.state.enter_wizard(ImageToPdfPayload())
        await ctx.reply(start_text(ctx.services.config['image_pdf_max_images']))

    async def handle(self, ctx: TurnContext, payload: ImageToPdfPayload):
        if ctx.message.has_attachment:
            await self._receive_image(ctx, payload)
            return
        if is_cancel(ctx.text):
            await cancel_wizard(ctx, "Image to PDF cancelled")
            return
        if DONE_WORDS.match(ctx.text):
            await self._convert(ctx, payload)
            return
        await ctx.reply(f"⏳ {len(payload.images)} image(s) so far. Send another photo, "
                        "type *done* to make the PDF, or 0 to cancel.")

    async def _receive_image(self, ctx: TurnContext, payload: ImageToPdfPayload):
        if not is_image(ctx.message.attachment_type):
            await ctx.reply("🖼️ Only photos (JPG or PNG) can be converted. Send a photo, or 0 to cancel.")
            return
        limit = ctx.services.config['image_pdf_max_images']
        if len(payload.images) >= limit:
            await ctx.reply(f"⚠️ That's the maximum of {limit} images. Type *done* to make the PDF.")
            return

        data = await ctx.download_attachment()
        if not data:
            await ctx.reply("⚠️ Failed to download the photo. Please send it again.")
            return
        try:
            await check_image(data)
        except ValidationError as e:
            await ctx.reply(f"⚠️ Skipped: {e}. Send another photo.")
            return

        number = len(payload.images) + 1
        payload.images.append(StagedFile(data=data,
                                         filename=ctx.message.attachment_name or f"image_{number}",
                                         mime_type=ctx.message.attachment_type))
        await ctx.reply(f"✅ Image {number} received. Send another, or type *done* to make the PDF.")

    async def _convert(self, ctx: TurnContext, payload: ImageToPdfPayload):
        if not payload.images:
            await ctx.reply("📭 No photos yet. Send at least one, or 0 to cancel.")
            return

        stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
        pdf = await images_to_pdf([image.data for image in payload.images], title=f"{ctx.user.name} {stamp}")
        pages = len(payload.images)
        await finish_to_menu(ctx)
        logger.info("🖼️ %s converted %d image(s) to PDF", ctx.identity, pages)

        await ctx.reply_document(pdf, f"images_{stamp}.pdf", PDF_MIME, caption=f"📄 {pages} page(s)")
        if ctx.user.role == Role.STUDENT:
            await ctx.reply(f"✅ Your PDF is ready ({pages} page(s)). To hand it in, type "
                            "*submit <CODE>* and send this PDF.")
        else:
            await ctx.reply(f"✅ Your PDF is ready ({pages} page(s)).")


image_to_pdf_wizard = ImageToPdfWizard()
