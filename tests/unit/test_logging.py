import json
from io import StringIO

import pytest
from twisted.logger import LogLevel, formatEvent, globalLogPublisher, jsonFileLogObserver
from twisted.logger import Logger as TwistedLogger

from fhegate.config.constants import DEFAULT_JSON_LOG_FILENAME, DEFAULT_LOG_FILENAME
from fhegate.utilities.logging import GlobalLoggerSettings, Logger, LogOutput


def naive_print_observer(event):
    print(formatEvent(event), end="")


# Typed-data payloads, ciphertext dicts and reprs all carry braces
braced_strings = (
    "{",
    "}{",
    "{}",
    "{handle}",
    str({"data": "0x0001", "type": "ebool"}),
    '{"types": {"Decrypt": [{"name": "handle", "type": "uint256"}]}}',
)


@pytest.fixture(autouse=True)
def restore_log_settings():
    log_level = GlobalLoggerSettings.log_level
    yield
    GlobalLoggerSettings.stop_all()
    GlobalLoggerSettings.set_log_level(log_level.name)


def test_twisted_logger_chokes_on_braces(capsys):
    twisted_logger = TwistedLogger("twisted", observer=naive_print_observer)
    twisted_logger.info("{handle}")
    captured = capsys.readouterr()
    assert "Unable to format event" in captured.out


@pytest.mark.parametrize("string", braced_strings)
def test_logger_is_fine_with_braces(capsys, string):
    logger = Logger("fhegate-logger", observer=naive_print_observer)
    logger.info(string)
    captured = capsys.readouterr()
    assert captured.out == string
    assert not captured.err


@pytest.mark.parametrize("string", braced_strings)
def test_json_logger_is_fine_with_braces(string):
    logger = Logger("fhegate-logger-json")
    file = StringIO()
    logger.observer = jsonFileLogObserver(outFile=file)
    logger.info(string)
    logged_event = file.getvalue()
    assert '"log_level": {"name": "info"' in logged_event
    assert "log_failure" not in logged_event


def test_escape_format_string():
    assert Logger.escape_format_string("{x}") == "{{x}}"
    assert Logger.escape_format_string("no braces") == "no braces"


def test_global_log_level_gates_emission(capsys):
    logger = Logger("fhegate-levels", observer=naive_print_observer)

    GlobalLoggerSettings.set_log_level("warn")
    logger.info("hidden")
    logger.warn("shown")
    assert capsys.readouterr().out == "shown"

    GlobalLoggerSettings.set_log_level("debug")
    logger.debug("now visible")
    assert capsys.readouterr().out == "now visible"


def test_filtered_observer_follows_the_global_level():
    seen = list()
    filtered = GlobalLoggerSettings.filtered(seen.append)

    GlobalLoggerSettings.set_log_level("error")
    filtered({"log_level": LogLevel.warn, "log_namespace": "fhegate"})
    filtered({"log_level": LogLevel.critical, "log_namespace": "fhegate"})
    assert [event["log_level"] for event in seen] == [LogLevel.critical]

    GlobalLoggerSettings.set_log_level("debug")
    filtered({"log_level": LogLevel.debug, "log_namespace": "fhegate"})
    assert len(seen) == 2


def test_outputs_are_started_once():
    GlobalLoggerSettings.start(LogOutput.CONSOLE)
    observer = GlobalLoggerSettings._observers[LogOutput.CONSOLE]
    GlobalLoggerSettings.start("console")
    assert GlobalLoggerSettings._observers[LogOutput.CONSOLE] is observer
    assert observer in globalLogPublisher._observers
    assert GlobalLoggerSettings.is_started("console")

    GlobalLoggerSettings.stop("console")
    assert not GlobalLoggerSettings.is_started(LogOutput.CONSOLE)
    assert observer not in globalLogPublisher._observers


def test_unknown_output():
    with pytest.raises(ValueError):
        GlobalLoggerSettings.start("syslog")


def test_file_outputs_write_to_the_log_dir(tmp_path):
    log_dir = tmp_path / "logs"
    GlobalLoggerSettings.start(LogOutput.TEXT, log_dir=log_dir)
    GlobalLoggerSettings.start(LogOutput.JSON, log_dir=log_dir)

    Logger("fhegate-files").warn("handle {0xa1} timed out")
    GlobalLoggerSettings.stop_all()

    assert "handle {0xa1} timed out" in (log_dir / DEFAULT_LOG_FILENAME).read_text()
    json_lines = (log_dir / DEFAULT_JSON_LOG_FILENAME).read_text().strip().split("\x1e")
    events = [json.loads(line) for line in json_lines if line.strip()]
    assert any(event["log_namespace"] == "fhegate-files" for event in events)


def test_pause_all_logging_while():
    seen = list()
    globalLogPublisher.addObserver(seen.append)
    logger = Logger("fhegate-paused")
    try:
        with GlobalLoggerSettings.pause_all_logging_while():
            logger.warn("dropped")
        logger.warn("delivered")
    finally:
        globalLogPublisher.removeObserver(seen.append)
    assert [event["log_format"] for event in seen] == ["delivered"]
    assert not GlobalLoggerSettings.paused


def test_pause_is_lifted_when_the_block_raises():
    with pytest.raises(RuntimeError):
        with GlobalLoggerSettings.pause_all_logging_while():
            raise RuntimeError("boom")
    assert not GlobalLoggerSettings.paused
