"""
Configuration
Runtime settings for the assignment bot, read from the environment (and a local .env file).
"""

import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv

load_dotenv()


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


# ========================================
# CONFIGURATION
# ========================================

CONFIG: Dict[str, Any] = {
    'bot_name': os.getenv('BOT_NAME', 'Kinanti Bot'),
    'bot_port': _env_int('BOT_PORT', 4000),
    'bot_secret': os.getenv('BOT_SECRET') or None,
    'webhook_url': os.getenv('WEBHOOK_TUGAS_URL', 'http://0.0.0.0:5678/webhook/nilai-tugas'),
    'timezone': os.getenv('BOT_TIMEZONE', 'Asia/Jakarta'),
    'registration_url': os.getenv('REGISTRATION_URL', 'https://kinantiku.com'),
    'admin_contact': os.getenv('ADMIN_CONTACT', 'wa.me/62895378394020'),
    'storage_dir': os.getenv('STORAGE_DIR', './uploads'),
    'storage_base_url': os.getenv('STORAGE_BASE_URL', 'file://uploads'),

    # Broadcast throttling (outbound fan-out)
    'broadcast_batch_size': _env_int('BROADCAST_BATCH_SIZE', 20),
    'broadcast_delay_min': _env_float('BROADCAST_DELAY_MIN', 3.0),
    'broadcast_delay_max': _env_float('BROADCAST_DELAY_MAX', 7.0),
    'broadcast_batch_pause': _env_float('BROADCAST_BATCH_PAUSE', 60.0),

    # Store retries
    'store_retry_attempts': _env_int('STORE_RETRY_ATTEMPTS', 3),
    'store_retry_backoff': _env_float('STORE_RETRY_BACKOFF', 1.0),

    # Grading result polling
    'grading_poll_interval': _env_float('GRADING_POLL_INTERVAL', 10.0),
    'grading_poll_max': _env_float('GRADING_POLL_MAX', 30.0),
    'grading_timeout': _env_float('GRADING_TIMEOUT', 60.0),

    # Conversation state; None disables idle expiry
    'session_idle_timeout': _env_float('SESSION_IDLE_TIMEOUT', None),

    'max_list_items': _env_int('MAX_LIST_ITEMS', 20),
    'image_pdf_max_images': _env_int('IMAGE_PDF_MAX_IMAGES', 20),
}
