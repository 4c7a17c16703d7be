import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

def setup_logger(
    log_file: Optional[str] = "logs/onboarding.log",
    level: str = "INFO",
    fmt: str = DEFAULT_FORMAT,
    datefmt: Optional[str] = None,
    max_bytes: int = 10_000_000,
    backup_count: int = 5
) -> logging.Logger:
    """Корневой логгер: консоль + ротируемый файл (если задан)"""
    logger = logging.getLogger()
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    formatter = logging.Formatter(fmt, datefmt=datefmt)

    # Повторная настройка не должна дублировать обработчики
    for handler in list(logger.handlers):
        if getattr(handler, "_onboarding_handler", False):
            logger.removeHandler(handler)
            handler.close()

    handlers = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(exist_ok=True, parents=True)
        handlers.append(RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler._onboarding_handler = True
        logger.addHandler(handler)
    return logger
