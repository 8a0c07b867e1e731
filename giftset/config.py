"""
Service settings.

Only the HTTP layer reads these; the import/costing/report code takes plain
arguments.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

DEFAULT_STORE_PATH = "giftset_store.json"
DEFAULT_LOG_LEVEL = "INFO"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    store_path: str = DEFAULT_STORE_PATH
    log_level: str = DEFAULT_LOG_LEVEL


def load_settings() -> Settings:
    return Settings(
        store_path=os.environ.get("GIFTSET_STORE_PATH", DEFAULT_STORE_PATH),
        log_level=os.environ.get("GIFTSET_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
    )


def configure_logging(level: str = DEFAULT_LOG_LEVEL) -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
