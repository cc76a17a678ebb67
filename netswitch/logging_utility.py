import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOGGER_NAME = 'netswitch'
FILE_FORMAT = '%(asctime)s - %(levelname)s - %(name)s:%(lineno)d - %(pathname)s - %(message)s'
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 3


class Logger:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            instance = super().__new__(cls)
            instance.logger = logging.getLogger(LOGGER_NAME)
            instance.logger.setLevel(logging.INFO)
            instance._handlers = []
            cls._instance = instance
        return cls._instance

    def configure(self, log_file: Optional[Path], echo: bool = True):
        """Attach the stdout echo and the append-only log sink.

        Every step outcome goes to both; ``log_file=None`` discards the sink.
        """
        while self._handlers:
            handler = self._handlers.pop()
            self.logger.removeHandler(handler)
            handler.close()

        handlers = []
        if echo:
            console = logging.StreamHandler(sys.stdout)
            console.setFormatter(logging.Formatter('%(message)s'))
            handlers.append(console)

        if log_file is None:
            handlers.append(logging.NullHandler())
        else:
            os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
            sink = RotatingFileHandler(log_file, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS)
            sink.setFormatter(logging.Formatter(FILE_FORMAT))
            handlers.append(sink)

        for handler in handlers:
            self.logger.addHandler(handler)
        self._handlers = handlers

    def get_logger(self):
        return self.logger


logger = Logger().get_logger()
