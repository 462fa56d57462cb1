"""
Service container
Bundles the external collaborators handed to the pipeline, router and wizards.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from core.config import CONFIG
from services.broadcaster import ThrottledBroadcaster
from services.grading import GradingService
from services.report import ExcelReportGenerator, ReportGenerator
from services.retry import RetryingStore, Sleep
from services.storage import FileStorage, LocalFileStorage
from services.store import InMemoryStore
from services.transport import LogTransport, Transport


@dataclass
class BotServices:
    store: Any
    transport: Transport
    storage: FileStorage
    reports: ReportGenerator
    grading: GradingService
    broadcaster: ThrottledBroadcaster
    config: Dict[str, Any] = field(default_factory=lambda: dict(CONFIG))

    @property
    def tz_name(self) -> str:
        return self.config.get('timezone', 'Asia/Jakarta')


def create_services(store: Any = None, transport: Optional[Transport] = None,
                    storage: Optional[FileStorage] = None,
                    config: Optional[Dict[str, Any]] = None,
                    sleep: Sleep = asyncio.sleep) -> BotServices:
    """Factory function wiring the default implementations"""
    cfg = dict(CONFIG)
    cfg.update(config or {})
    store = RetryingStore(store if store is not None else InMemoryStore(),
                          attempts=cfg['store_retry_attempts'],
                          backoff=cfg['store_retry_backoff'], sleep=sleep)
    transport = transport if transport is not None else LogTransport()
    return BotServices(
        store=store,
        transport=transport,
        storage=storage if storage is not None else LocalFileStorage(cfg['storage_dir'], cfg['storage_base_url']),
        reports=ExcelReportGenerator(),
        grading=GradingService(store, transport,
                               webhook_url=cfg['webhook_url'],
                               poll_interval=cfg['grading_poll_interval'],
                               poll_max=cfg['grading_poll_max'],
                               timeout=cfg['grading_timeout'],
                               sleep=sleep),
        broadcaster=ThrottledBroadcaster(transport,
                                         batch_size=cfg['broadcast_batch_size'],
                                         delay_min=cfg['broadcast_delay_min'],
                                         delay_max=cfg['broadcast_delay_max'],
                                         batch_pause=cfg['broadcast_batch_pause'],
                                         sleep=sleep),
        config=cfg,
    )
