"""
Logging setup.

Console output always; optional log files rotated per day and per size:
snaplingo_2026-01-12.log, snaplingo_2026-01-12_01.log, ... and a separate
error_2026-01-12.log for ERROR and above.
"""

import glob
import logging
import os
from datetime import datetime, timedelta
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _today() -> str:
    return datetime.now().strftime("%Y-%m-%d")


class DailyRotatingFileHandler(RotatingFileHandler):
    """
    Rotates to a new dated file at midnight and to numbered siblings when the
    current file exceeds max_bytes. Files older than backup_days are removed.
    """

    def __init__(
        self,
        log_dir: str,
        base_name: str = "snaplingo",
        max_bytes: int = 20 * 1024 * 1024,
        backup_count: int = 10,
        backup_days: int = 14,
        encoding: str = "utf-8",
    ):
        self.log_dir = Path(log_dir)
        self.base_name = base_name
        self.backup_days = backup_days
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._current_date = _today()

        super().__init__(
            filename=str(self._path_for(self._current_date)),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding=encoding,
        )
        self._cleanup_old_logs()

    def _path_for(self, date: str) -> Path:
        return self.log_dir / f"{self.base_name}_{date}.log"

    def shouldRollover(self, record):
        if self._current_date != _today():
            return True
        return super().shouldRollover(record)

    def doRollover(self):
        today = _today()
        if self._current_date == today:
            super().doRollover()
            return
        # Date changed: switch files instead of numbering
        if self.stream:
            self.stream.close()
            self.stream = None
        self._current_date = today
        self.baseFilename = str(self._path_for(today))
        self.stream = self._open()
        self._cleanup_old_logs()

    def rotation_filename(self, default_name):
        # snaplingo_2026-01-12.log.1 -> snaplingo_2026-01-12_01.log
        if ".log." not in default_name:
            return default_name
        base, num = default_name.rsplit(".log.", 1)
        return f"{base}_{num.zfill(2)}.log"

    def _cleanup_old_logs(self) -> None:
        cutoff = datetime.now() - timedelta(days=self.backup_days)
        for log_file in glob.glob(str(self.log_dir / f"{self.base_name}_*.log")):
            stem = os.path.basename(log_file)[len(self.base_name) + 1:]
            try:
                file_date = datetime.strptime(stem[:10], "%Y-%m-%d")
            except ValueError:
                continue
            if file_date < cutoff:
                try:
                    os.remove(log_file)
                except OSError as e:
                    logging.debug(f"Could not remove old log {log_file}: {e}")


def setup_logging(
    log_dir: Optional[str] = None,
    log_level: str = "INFO",
    max_bytes: int = 20 * 1024 * 1024,
    backup_count: int = 10,
    backup_days: int = 14,
) -> None:
    """
    Configure the root logger.

    Args:
        log_dir: Directory for rotating log files; console only when None
        log_level: DEBUG/INFO/WARNING/ERROR
        max_bytes: Size limit of one log file
        backup_count: Numbered files kept per day
        backup_days: Days of history kept
    """
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_dir:
        for base_name, level in (("snaplingo", logging.DEBUG), ("error", logging.ERROR)):
            handler = DailyRotatingFileHandler(
                log_dir=log_dir,
                base_name=base_name,
                max_bytes=max_bytes,
                backup_count=backup_count,
                backup_days=backup_days,
            )
            handler.setFormatter(formatter)
            handler.setLevel(level)
            root_logger.addHandler(handler)

    # Quiet noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.INFO)

    if log_dir:
        logging.info(f"Logging initialized, directory: {Path(log_dir).absolute()}")
