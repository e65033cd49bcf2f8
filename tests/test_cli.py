"""CLI tests: argument parsing, exit codes and logging setup."""

import logging
from pathlib import Path

import pytest

import tablesite.cli as cli
from tablesite.config import MSG_DONE, MSG_SUCCEED_INIT


def test_parser_build_options():
    args = cli.build_parser().parse_args(["build", "things", "--clean", "--overwrite", "page"])
    assert (args.command, args.csv, args.clean, args.overwrite) == ("build", "things", True, "page")


def test_parser_rejects_unknown_overwrite():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["build", "--overwrite", "everything"])


def test_new_then_build(tmp_path: Path, capsys):
    assert cli.main(["new", "My Site"], cwd=tmp_path) == 0
    out = capsys.readouterr().out
    assert MSG_SUCCEED_INIT in out and "cd my-site" in out

    project = tmp_path / "my-site"
    assert cli.main(["build"], cwd=project) == 0
    assert MSG_DONE in capsys.readouterr().out

    dist = project / "dist"
    assert (dist / "index.html").is_file()
    assert (dist / "item" / "apple.html").is_file()
    assert (dist / "item" / "7-up.html").is_file()
    assert (dist / "sitemap" / "numeric.html").is_file()
    assert (dist / "assets" / "style.css").is_file()
    assert "My Table Site" in (dist / "about.html").read_text(encoding="utf-8")
    assert not (project / "logs").exists()


def test_new_existing_folder_fails(tmp_path: Path, capsys):
    (tmp_path / "my-site").mkdir()
    assert cli.main(["new", "My Site"], cwd=tmp_path) == 1
    assert "folder already exists" in capsys.readouterr().out


def test_build_outside_project_fails(tmp_path: Path, capsys):
    assert cli.main(["build"], cwd=tmp_path) == 1
    assert "not a project folder" in capsys.readouterr().out


def test_build_interrupted(tmp_path: Path, monkeypatch):
    def interrupted(*args, **kwargs):
        raise KeyboardInterrupt

    monkeypatch.setattr(cli, "run_build", interrupted)
    assert cli.main(["build"], cwd=tmp_path) == 130


def test_file_logging_enabled_respects_env(monkeypatch):
    monkeypatch.delenv("PYTEST_CURRENT_TEST", raising=False)
    monkeypatch.setenv("DISABLE_FILE_LOGS", "1")
    assert cli.file_logging_enabled() is False
    monkeypatch.delenv("DISABLE_FILE_LOGS")
    assert cli.file_logging_enabled() is True


def test_configure_logging_writes_file(tmp_path: Path):
    log_dir = tmp_path / "logs"
    cli.configure_logging("DEBUG", enable_file=True, log_dir=log_dir)
    logging.getLogger("tablesite.test").debug("hello")
    for handler in logging.root.handlers:
        handler.flush()
    assert "hello" in (log_dir / "tablesite.log").read_text(encoding="utf-8")
    cli.configure_logging("WARNING", enable_file=False)
    assert not any(isinstance(h, logging.FileHandler) for h in logging.root.handlers)


def test_configure_logging_filehandler_error(monkeypatch, tmp_path: Path):
    class BadFH:
        def __init__(self, *a, **k):
            raise OSError("fh error")

    monkeypatch.setattr(cli.logging, "FileHandler", BadFH)
    cli.configure_logging("INFO", enable_file=True, log_dir=tmp_path / "logs")
    assert len(logging.root.handlers) == 1
