"""Unit tests for CLI utilities."""

import logging

import pytest

from zealbuild.build.diagnostics import Diagnostic, PipelineStage
from zealbuild.cli_utils import ErrorFormatter, PathValidator, setup_logging


class TestErrorFormatter:
    """Tests for ErrorFormatter class."""

    def test_print_error(self, capsys):
        ErrorFormatter.print_error("Build failed!", "details here")

        out = capsys.readouterr().out
        assert f"{ErrorFormatter.RED}✗ Build failed!{ErrorFormatter.RESET}" in out
        assert "details here" in out

    def test_print_success(self, capsys):
        ErrorFormatter.print_success("Build successful!")

        assert f"{ErrorFormatter.GREEN}✓ Build successful!" in capsys.readouterr().out

    def test_print_diagnostics_colors_by_severity(self, capsys):
        ErrorFormatter.print_diagnostics([
            Diagnostic(stage=PipelineStage.ASSEMBLE, message="warning: foo", severity="warning"),
            Diagnostic(stage=PipelineStage.LINK, message="exit code 1"),
        ])

        lines = capsys.readouterr().out.splitlines()
        assert lines == [
            f"{ErrorFormatter.YELLOW}as: warning: foo{ErrorFormatter.RESET}",
            f"{ErrorFormatter.RED}ld: exit code 1{ErrorFormatter.RESET}",
        ]

    def test_handle_file_not_found(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            ErrorFormatter.handle_file_not_found(FileNotFoundError("main.asm"))

        assert exc_info.value.code == 1
        assert "File not found" in capsys.readouterr().out

    def test_handle_unexpected_error_verbose_prints_traceback(self, capsys):
        try:
            raise ValueError("bad value")
        except ValueError as e:
            with pytest.raises(SystemExit) as exc_info:
                ErrorFormatter.handle_unexpected_error(e, verbose=True)

        assert exc_info.value.code == 1
        out = capsys.readouterr().out
        assert "ValueError: bad value" in out
        assert "Traceback:" in out


class TestPathValidator:
    """Tests for PathValidator class."""

    def test_valid_directory(self, tmp_path):
        PathValidator.validate_project_dir(tmp_path)

    def test_missing_directory(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            PathValidator.validate_project_dir(tmp_path / "missing")

        assert exc_info.value.code == 2


class TestSetupLogging:
    """Tests for setup_logging."""

    @pytest.fixture
    def root_logger(self):
        logger = logging.getLogger()
        handlers = list(logger.handlers)
        level = logger.level
        yield logger
        logger.handlers = handlers
        logger.setLevel(level)

    def test_default_level_shows_warnings(self, root_logger):
        setup_logging(verbose=False)

        assert root_logger.level == logging.WARNING
        assert root_logger.handlers[-1].level == logging.WARNING

    def test_verbose_level(self, root_logger):
        setup_logging(verbose=True)

        assert root_logger.level == logging.DEBUG
        assert root_logger.handlers[-1].formatter._fmt == (
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
