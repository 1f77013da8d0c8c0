"""
Shared Logging Functionality

Sets up the 'app' logger that every aierastack module logs through, and keeps
the HTTP client libraries underneath it (PyGithub, urllib3, httpx) from
flooding the output with one line per upstream request.
"""

import logging
import sys
from typing import Iterable, Optional, Union

UPSTREAM_LOGGERS = ("github", "urllib3", "httpx", "httpcore")


class LoggingManager:
    """
    Configures the application logger and retrieves module loggers by name.
    """

    DEFAULT_LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)8s | %(message)s"
    DEFAULT_LOG_LEVEL = logging.INFO

    def __init__(self,
                 logger_name: str = "app",
                 log_level: Union[int, str] = DEFAULT_LOG_LEVEL,
                 log_file: Optional[str] = None,
                 console_output: bool = True,
                 upstream_level: Union[int, str] = logging.WARNING,
                 upstream_loggers: Iterable[str] = UPSTREAM_LOGGERS):
        """
        Args:
            logger_name (str): Root of the application's logger tree.
            log_level (Union[int, str], optional): Level for the application logger, e.g. "debug".
            log_file (Optional[str], optional): Also append records to this file.
            console_output (bool, optional): Write records to stderr.
            upstream_level (Union[int, str], optional): Minimum level for the HTTP client libraries.
            upstream_loggers (Iterable[str], optional): Logger names of those libraries.
        """
        self.logger_name = logger_name
        self.log_level = self._normalize_level(log_level)
        self.log_file = log_file
        self.console_output = console_output

        self.logger = logging.getLogger(self.logger_name)
        self.logger.setLevel(self.log_level)
        self.logger.propagate = False
        # Reconfiguring (CLI re-invocations, app reloads) must not stack handlers
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

        self._formatter = logging.Formatter(self.DEFAULT_LOG_FORMAT)
        self._add_handlers()

        upstream_level = self._normalize_level(upstream_level)
        for name in upstream_loggers:
            logging.getLogger(name).setLevel(upstream_level)

    @staticmethod
    def _normalize_level(level: Union[int, str]) -> Union[int, str]:
        return level.upper() if isinstance(level, str) else level

    def _add_handlers(self) -> None:
        if self.console_output:
            console_handler = logging.StreamHandler(stream=sys.stderr)
            console_handler.setFormatter(self._formatter)
            self.logger.addHandler(console_handler)

        if not self.log_file:
            return
        try:
            file_handler = logging.FileHandler(self.log_file, mode='a')
        except OSError as e:
            self.logger.warning("Could not open log file %s: %s", self.log_file, e)
            return
        file_handler.setFormatter(self._formatter)
        self.logger.addHandler(file_handler)
        self.logger.debug("Logging to file: %s", self.log_file)

    @staticmethod
    def get_logger(name: str) -> logging.Logger:
        """
        Logger for one module, e.g. "app.cache".

        Children of 'app' have no handlers of their own; they reach the ones
        installed on 'app' once a LoggingManager has been created.
        """
        return logging.getLogger(name)

    @classmethod
    def from_config(cls, config, logger_name: str = "app") -> "LoggingManager":
        """Builds a manager from an application Config (log_level/log_file)."""
        return cls(logger_name=logger_name, log_level=config.log_level, log_file=config.log_file)
