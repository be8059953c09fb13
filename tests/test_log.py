import logging
from datetime import datetime

from securevault import log

STAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
STAMP_LEN = 19


def _split(text):
    stamp = datetime.strptime(text[:STAMP_LEN], STAMP_FORMAT)
    return stamp, text[STAMP_LEN:]


def test_format_with_tag_and_args():
    text = log.format_message("INFO", "auth", "Issued token for user: %s", "alice")
    stamp, rest = _split(text)
    assert stamp.year >= 2000
    assert rest == " [INFO] [auth] Issued token for user: alice"


def test_format_without_tag():
    text = log.format_message("WARN", "", "plain")
    stamp, rest = _split(text)
    assert stamp.year >= 2000
    assert rest == " [WARN] plain"


def test_format_without_args_keeps_percent():
    text = log.format_message("INFO", "t", "100% done")
    assert text.endswith("[t] 100% done")


def test_info_logs_at_info(caplog):
    caplog.set_level(logging.INFO, logger="securevault")
    log.info("vault", "Stored key: id=%s", "abc")
    assert caplog.records[-1].levelno == logging.INFO
    assert caplog.records[-1].getMessage().endswith("[INFO] [vault] Stored key: id=abc")


def test_warn_logs_at_warning(caplog):
    caplog.set_level(logging.INFO, logger="securevault")
    log.warn("auth", "careful")
    assert caplog.records[-1].levelno == logging.WARNING
    assert "[WARN] [auth] careful" in caplog.records[-1].getMessage()


def test_error_logs_at_error(caplog):
    caplog.set_level(logging.INFO, logger="securevault")
    log.error("rekey", "failed: %s", "boom")
    assert caplog.records[-1].levelno == logging.ERROR
    assert caplog.records[-1].getMessage().endswith("[ERROR] [rekey] failed: boom")