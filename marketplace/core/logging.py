from __future__ import annotations

import logging

from marketplace.core.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    settings = get_settings()
    root = logging.getLogger()
    resolved = (level or settings.log_level).upper()
    if getattr(root, "_marketplace_configured", False):
        root.setLevel(resolved)
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(resolved)
    root._marketplace_configured = True  # type: ignore[attr-defined]
