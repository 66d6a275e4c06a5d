import logging
import os
from typing import Union

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_custom_logger(
    log_file: str,
    name: str = "biometric_bridge",
    level: Union[int, str] = logging.INFO,
    log_dir: str = "logs",
) -> logging.Logger:
    """
    Bridge root logger: console plus `<log_dir>/<log_file>`.

    Module loggers (`biometric_bridge.services.rdservice` etc.) propagate
    here, so handlers are attached once, on the first call for `name`.
    """
    logger = logging.getLogger(name)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)

    if not logger.handlers:
        formatter = logging.Formatter(LOG_FORMAT)

        ch = logging.StreamHandler()
        ch.setFormatter(formatter)
        logger.addHandler(ch)

        os.makedirs(log_dir, exist_ok=True)
        fh = logging.FileHandler(os.path.join(log_dir, os.path.basename(log_file)))
        fh.setFormatter(formatter)
        logger.addHandler(fh)

    return logger
