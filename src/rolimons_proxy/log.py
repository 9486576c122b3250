from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger(name: str = "rolimons_proxy", level: int | str = logging.INFO) -> logging.Logger:
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    if not logging.getLogger().handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    else:
        logging.getLogger().setLevel(level)
    return logging.getLogger(name)
