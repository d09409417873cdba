import logging
import logging.config
import os
from pathlib import Path
from typing import Iterable

_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _prune_backups(log_dir: Path, base_name: str, backup_count: int) -> None:
    if backup_count < 1:
        return
    candidates: Iterable[Path] = sorted(
        log_dir.glob(f"{base_name}.*"),
        key=lambda path: path.stat().st_mtime,
        reverse=True,
    )
    for stale in list(candidates)[backup_count:]:
        try:
            stale.unlink()
        except OSError:
            continue


def _rotating_handler(path: Path, level: str, max_bytes: int, backup_count: int) -> dict:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "formatter": "default",
        "filename": str(path),
        "maxBytes": max_bytes,
        "backupCount": backup_count,
        "level": level,
        "encoding": "utf8",
    }


def setup_logging():
    """
    Configures logging for the game service.
    Logs go to the console plus '<ISIT_LOG_DIR>/app.log' and '<ISIT_LOG_DIR>/error.log'.
    """
    log_dir = Path(os.getenv("ISIT_LOG_DIR", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)
    max_bytes = int(os.getenv("LOG_MAX_BYTES", str(5 * 1024 * 1024)))
    backup_count = int(os.getenv("LOG_BACKUP_COUNT", "3"))
    app_level = os.getenv("LOG_LEVEL", "DEBUG").upper()
    _prune_backups(log_dir, "app.log", backup_count)
    _prune_backups(log_dir, "error.log", backup_count)

    def _logger(handlers, level="INFO"):
        return {"handlers": handlers, "level": level, "propagate": False}

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": {"format": _LOG_FORMAT}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "level": "INFO",
            },
            "file_app": _rotating_handler(
                log_dir / "app.log", "INFO", max_bytes, backup_count
            ),
            "file_error": _rotating_handler(
                log_dir / "error.log", "ERROR", max_bytes, backup_count
            ),
        },
        "loggers": {
            "": {  # Root logger
                "handlers": ["console", "file_app", "file_error"],
                "level": "INFO",
                "propagate": True,
            },
            "uvicorn": _logger(["console", "file_app"]),
            "uvicorn.access": _logger(["console", "file_app"]),
            "uvicorn.error": _logger(["console", "file_error"]),
            "auth_module": _logger(["console", "file_app"]),
            "database": _logger(["console", "file_app", "file_error"]),
            "isit_game": _logger(["console", "file_app", "file_error"], app_level),
        },
    }

    logging.config.dictConfig(logging_config)
    logging.info("Logging configured successfully.")
