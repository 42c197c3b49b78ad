"""
SellerFlow — Logging setup.
Modules log through `logging.getLogger(__name__)`; the app configures the root once.
"""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown LOG_LEVEL: {level!r}")
    logging.basicConfig(level=numeric, format=LOG_FORMAT)
    logging.getLogger("sellerflow").setLevel(numeric)
