"""
Portflow Logging System
Singleton logger writing to the console and, optionally, a log file.

PORTFLOW_LOG_FILE selects the file (empty disables it),
PORTFLOW_LOG_LEVEL the threshold. Child loggers ("portflow.api", ...)
propagate into the same handlers.
"""
import logging
import os
import sys
from typing import List

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def _handlers(log_file: str) -> List[logging.Handler]:
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if log_file:
        try:
            handlers.append(logging.FileHandler(log_file, encoding='utf-8'))
        except (PermissionError, FileNotFoundError):
            print(f"[!] Cannot write {log_file}, logging to console only.", file=sys.stderr)

    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


class Logger:
    """Process-wide logger; every Logger() call returns the same instance."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(Logger, cls).__new__(cls)
            cls._instance._setup()
        return cls._instance

    def _setup(self) -> None:
        self.logger = logging.getLogger("portflow")
        level_name = os.getenv("PORTFLOW_LOG_LEVEL", "INFO").upper()
        self.logger.setLevel(getattr(logging, level_name, logging.INFO))

        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
        for handler in _handlers(os.getenv("PORTFLOW_LOG_FILE", "portflow.log")):
            self.logger.addHandler(handler)

    def child(self, name: str) -> logging.Logger:
        return self.logger.getChild(name)

    def debug(self, msg: str) -> None:
        self.logger.debug(msg)

    def info(self, msg: str) -> None:
        self.logger.info(msg)

    def warning(self, msg: str) -> None:
        self.logger.warning(msg)

    def error(self, msg: str) -> None:
        self.logger.error(msg)

    def success(self, msg: str) -> None:
        self.logger.info(f"[SUCCESS] {msg}")
