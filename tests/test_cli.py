"""Tests for covers_check/cli.py"""

import json
import textwrap
from pathlib import Path

import pytest
from click.testing import CliRunner

from covers_check import __version__
from covers_check.cli import cli
from covers_check.config import SOURCE_ROOTS_ENV

WIDGETS = """\
class Widget:
    def render(self):
        return ""
"""

CLEAN_TESTS = '''\
class TestWidget:
    """@coversDefaultClass shop.widgets.Widget"""

    def test_render(self):
        """@covers ::render"""
'''

BROKEN_TESTS = '''\
class TestWidget:
    """@coversDefaultClass shop.widgets.Widget"""

    def test_render(self):
        """@covers ::render"""

    def test_missing(self):
        """
        @covers ::explode
        @covers shop.widgets.Ghost::render
        """
'''


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

@pytest.fixture
def project(tmp_path, monkeypatch) -> Path:
    """A project with src/shop and an empty tests/ directory, used as cwd."""
    monkeypatch.delenv(SOURCE_ROOTS_ENV, raising=False)
    (tmp_path / "src" / "shop").mkdir(parents=True)
    (tmp_path / "src" / "shop" / "__init__.py").write_text("", encoding="utf-8")
    (tmp_path / "src" / "shop" / "widgets.py").write_text(WIDGETS, encoding="utf-8")
    (tmp_path / "tests").mkdir()
    monkeypatch.chdir(tmp_path)
    return tmp_path


def write_tests(project: Path, content: str, name: str = "tests/test_shop.py") -> Path:
    path = project / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def invoke(*args: str):
    return CliRunner().invoke(cli, list(args))


# ---------------------------------------------------------------------------
# Global options
# ---------------------------------------------------------------------------

def test_version_flag():
    result = invoke("--version")
    assert result.exit_code == 0
    assert __version__ in result.output


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------

def test_init_writes_template(project):
    result = invoke("init")
    assert result.exit_code == 0
    assert "Template written" in result.output
    assert "source_roots:" in (project / "covers-check.yaml").read_text()


def test_init_refuses_to_overwrite(project):
    (project / "covers-check.yaml").write_text("source_roots: [src]\n")
    result = invoke("init")
    assert result.exit_code == 1
    assert "already exists" in result.output


# ---------------------------------------------------------------------------
# check
# ---------------------------------------------------------------------------

class TestCheck:
    def test_clean_suite_exits_zero(self, project):
        write_tests(project, CLEAN_TESTS)
        result = invoke("check")
        assert result.exit_code == 0
        report = json.loads(result.stdout)
        assert report["report_type"] == "covers_check"
        assert report["paths"] == ["tests"]
        assert report["summary"] == {"tests_checked": 1, "tests_with_violations": 0, "violations": 0}
        assert report["violations"] == []

    def test_violations_exit_one_and_are_reported(self, project):
        write_tests(project, BROKEN_TESTS)
        result = invoke("check")
        assert result.exit_code == 1
        report = json.loads(result.stdout)
        assert report["summary"] == {"tests_checked": 2, "tests_with_violations": 1, "violations": 2}
        assert report["violations"] == [
            {
                "test": "tests/test_shop.py::TestWidget::test_missing",
                "message": "@covers method does not exist shop.widgets.Widget::explode",
            },
            {
                "test": "tests/test_shop.py::TestWidget::test_missing",
                "message": "@covers class does not exist shop.widgets.Ghost",
            },
        ]

    def test_explicit_paths(self, project):
        write_tests(project, BROKEN_TESTS)
        write_tests(project, CLEAN_TESTS, name="other/test_clean.py")
        result = invoke("check", "other")
        assert result.exit_code == 0
        assert json.loads(result.stdout)["paths"] == ["other"]

    def test_source_option_replaces_configured_roots(self, project):
        write_tests(project, CLEAN_TESTS)
        (project / "lib").mkdir()
        result = invoke("--source", "lib", "check")
        assert result.exit_code == 1
        messages = [v["message"] for v in json.loads(result.stdout)["violations"]]
        assert messages == ["@coversDefaultClass does not exist 'shop.widgets.Widget'"]

    def test_config_file_is_used(self, project):
        write_tests(project, BROKEN_TESTS, name="checks/test_shop.py")
        (project / "covers-check.yaml").write_text(
            textwrap.dedent("""\
                source_roots: [src]
                test_paths: [checks]
                """),
            encoding="utf-8",
        )
        result = invoke("check")
        assert result.exit_code == 1
        assert json.loads(result.stdout)["paths"] == ["checks"]

    def test_missing_explicit_config(self, project):
        result = invoke("--config", "nope.yaml", "check")
        assert result.exit_code == 1
        assert "Configuration error" in result.output

    def test_output_and_pretty(self, project):
        write_tests(project, CLEAN_TESTS)
        result = invoke("--output", "report.json", "--pretty", "check")
        assert result.exit_code == 0
        text = (project / "report.json").read_text(encoding="utf-8")
        assert text.startswith("{\n  ")
        assert json.loads(text)["summary"]["tests_checked"] == 1
