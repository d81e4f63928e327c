# tests/test_logging_setup.py

from __future__ import annotations

import logging

import pytest

from edda.logging_setup import setup_logging


@pytest.fixture()
def restore_root_logging():
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    yield root
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()
    for h in saved_handlers:
        root.addHandler(h)
    root.setLevel(saved_level)
    logging.captureWarnings(False)


def test_token_is_masked_in_file_and_console(tmp_path, capsys, restore_root_logging) -> None:
    log_file = setup_logging(log_dir=tmp_path, secrets=["ghp_abc123", None])
    assert log_file == tmp_path / "edda.log"

    log = logging.getLogger("edda.sync.github_provider")
    log.info("Authorization: token %s", "ghp_abc123")
    log.debug("plain line")
    for h in restore_root_logging.handlers:
        h.flush()

    text = log_file.read_text(encoding="utf-8")
    assert "ghp_abc123" not in text
    assert "Authorization: token ***" in text
    assert "plain line" in text

    err = capsys.readouterr().err
    assert "ghp_abc123" not in err
    assert "Authorization: token ***" in err


def test_console_quiets_background_and_third_party(tmp_path, capsys, restore_root_logging) -> None:
    setup_logging(log_dir=tmp_path)

    logging.getLogger("edda.sync.sync_scheduler").info("tick")
    logging.getLogger("edda.sync.offline_queue").warning("queue overflow")
    logging.getLogger("edda.cli.commands").info("command ran")
    logging.getLogger("httpx").warning("slow request")
    for h in restore_root_logging.handlers:
        h.flush()

    err = capsys.readouterr().err
    assert "tick" not in err
    assert "queue overflow" in err
    assert "command ran" in err
    assert "slow request" not in err

    # The file keeps everything edda logged.
    text = (tmp_path / "edda.log").read_text(encoding="utf-8")
    assert "tick" in text
    assert "slow request" in text
