from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

ROOT_LOGGER = "sitescore"

_FORMAT = "%(asctime)s %(levelname)s [%(site)s] %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


class _DefaultSite(logging.Filter):
    """Give records logged without an adapter a `site` field so the format never fails."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "site"):
            record.site = "-"
        return True


def setup_root_logger(log_path: Optional[Path] = None, level: int = logging.INFO) -> logging.Logger:
    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)
    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    # stdout may carry the CSV/JSON stream, so log records go to stderr
    ch = logging.StreamHandler(stream=sys.stderr)
    ch.setLevel(level)
    ch.setFormatter(formatter)
    ch.addFilter(_DefaultSite())
    root_logger.addHandler(ch)
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_path, encoding="utf-8")
        fh.setLevel(level)
        fh.setFormatter(formatter)
        fh.addFilter(_DefaultSite())
        root_logger.addHandler(fh)
    return root_logger


def get_site_logger(site_slug: str, component: str = "fetch") -> logging.LoggerAdapter:
    logger = logging.getLogger(f"{ROOT_LOGGER}.{component}")
    return logging.LoggerAdapter(logger, extra={"site": site_slug})
