"""
Log plumbing for fhegate.

Components log through :class:`Logger`. Where their events go is a process-wide
decision taken through :class:`GlobalLoggerSettings`: standard output, and rotating
text and JSON files in the user log directory (``FHEGATE_USER_LOG_DIR``).
"""

import sys
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Dict, Union

from twisted.logger import (
    FileLogObserver,
    FilteringLogObserver,
    ILogObserver,
    LogLevel,
    LogLevelFilterPredicate,
    formatEventAsClassicLogText,
    globalLogPublisher,
    jsonFileLogObserver,
    textFileLogObserver,
)
from twisted.logger import Logger as TwistedLogger
from twisted.python.logfile import LogFile

from fhegate.config.constants import (
    DEFAULT_JSON_LOG_FILENAME,
    DEFAULT_LOG_FILENAME,
    USER_LOG_DIR,
)

MAXIMUM_LOG_SIZE = 10 * 1_048_576
MAX_LOG_FILES = 10


class LogOutput(Enum):
    CONSOLE = "console"
    TEXT = "text"
    JSON = "json"


def rotating_log_file(filename: str, log_dir: Union[str, Path] = USER_LOG_DIR) -> LogFile:
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    return LogFile(
        name=filename,
        directory=str(log_dir),
        rotateLength=MAXIMUM_LOG_SIZE,
        maxRotatedFiles=MAX_LOG_FILES,
    )


def build_observer(output: LogOutput, log_dir: Union[str, Path] = USER_LOG_DIR) -> ILogObserver:
    if output is LogOutput.CONSOLE:
        return textFileLogObserver(sys.stdout)
    if output is LogOutput.TEXT:
        return FileLogObserver(
            outFile=rotating_log_file(DEFAULT_LOG_FILENAME, log_dir),
            formatEvent=formatEventAsClassicLogText,
        )
    return jsonFileLogObserver(outFile=rotating_log_file(DEFAULT_JSON_LOG_FILENAME, log_dir))


class GlobalLoggerSettings:
    """
    Process-wide log level and outputs.

    Each output is installed on Twisted's global publisher at most once, behind a
    level filter that follows :meth:`set_log_level`.
    """

    log_level = LogLevel.info
    paused = False

    _level_filter = LogLevelFilterPredicate(defaultLogLevel=LogLevel.info)
    _observers: Dict[LogOutput, ILogObserver] = dict()

    @classmethod
    def set_log_level(cls, log_level_name: str) -> None:
        cls.log_level = LogLevel.levelWithName(log_level_name)
        cls._level_filter.defaultLogLevel = cls.log_level

    @classmethod
    def filtered(cls, observer: ILogObserver) -> ILogObserver:
        return FilteringLogObserver(observer, [cls._level_filter])

    @classmethod
    def is_started(cls, output: Union[LogOutput, str]) -> bool:
        return LogOutput(output) in cls._observers

    @classmethod
    def start(cls, output: Union[LogOutput, str], log_dir: Union[str, Path] = USER_LOG_DIR) -> None:
        output = LogOutput(output)
        if output in cls._observers:
            return
        observer = cls.filtered(build_observer(output, log_dir=log_dir))
        globalLogPublisher.addObserver(observer)
        cls._observers[output] = observer

    @classmethod
    def stop(cls, output: Union[LogOutput, str]) -> None:
        observer = cls._observers.pop(LogOutput(output), None)
        if observer is not None:
            globalLogPublisher.removeObserver(observer)

    @classmethod
    def stop_all(cls) -> None:
        for output in list(cls._observers):
            cls.stop(output)

    @classmethod
    @contextmanager
    def pause_all_logging_while(cls):
        """Silences every fhegate logger for the duration of the block."""
        previously_paused, cls.paused = cls.paused, True
        try:
            yield
        finally:
            cls.paused = previously_paused

    @classmethod
    def allows(cls, level: LogLevel) -> bool:
        return not cls.paused and level >= cls.log_level


class Logger(TwistedLogger):
    """
    Twisted logger that takes messages verbatim.

    Twisted reads every message as a PEP 3101 format string, and typed-data payloads,
    ciphertext dicts and reprs are full of braces; they are escaped before emission.
    """

    @staticmethod
    def escape_format_string(string: str) -> str:
        return string.replace("{", "{{").replace("}", "}}")

    def emit(self, level, format=None, **kwargs):
        if not GlobalLoggerSettings.allows(level):
            return
        if format is not None:
            format = self.escape_format_string(str(format))
        super().emit(level, format=format, **kwargs)
