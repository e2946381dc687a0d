"""pytest plugin that fails tests whose @covers annotations do not resolve.

Enable it with ``pytest --covers-check`` or ``covers_check = true`` in the
ini file. Every test is checked once it has finished, from its call report or,
when setup did not pass, from its setup report. Its annotations are checked
against a symbol index of the source roots and every violation is added to
that report. A passing, skipped or xfailed test turns into a failure carrying
the violations; a failing test keeps its own traceback and gets an
additional ``covers-check`` report section.
"""

import logging
from pathlib import Path

import pytest

from covers_check.annotations import annotations_from_docstrings
from covers_check.collect import COVERS_MARKER, DEFAULT_CLASS_MARKER
from covers_check.config import DEFAULT_CONFIG_PATH, Config, ConfigError, load
from covers_check.dispatcher import CompletionDispatcher
from covers_check.models import AnnotationSet, TestCase, Violation
from covers_check.resolver import SymbolIndex

logger = logging.getLogger(__name__)

PLUGIN_NAME = "covers-check-session"
REPORT_SECTION = "covers-check"
USER_PROPERTY = "covers_violation"


# ---------------------------------------------------------------------------
# Hooks
# ---------------------------------------------------------------------------

def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("covers-check", "@covers annotation checks")
    group.addoption("--covers-check", action="store_true", default=False, dest="covers_check",
                    help="Fail tests whose @covers / @coversDefaultClass annotations do not resolve.")
    group.addoption("--covers-config", dest="covers_config", default=None,
                    help=f"Path to the covers-check configuration file (default: {DEFAULT_CONFIG_PATH}).")
    group.addoption("--covers-source", action="append", default=[], dest="covers_source",
                    help="Source root to index (repeatable, replaces the configured roots).")
    parser.addini("covers_check", type="bool", default=False,
                  help="Enable the @covers annotation check.")


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "covers(*targets): coverage targets of the test, same syntax as @covers")
    config.addinivalue_line("markers", "covers_default_class(name): class used by '::member' coverage targets")

    if not (config.getoption("covers_check") or config.getini("covers_check")):
        return

    settings = _load_settings(config)
    roots = [_resolve_root(config.rootpath, root) for root in settings.source_roots]
    index = SymbolIndex.from_paths(roots, settings.interface_bases)
    logger.debug("covers-check enabled for source roots %s", [str(root) for root in roots])
    config.pluginmanager.register(CoversCheckPlugin(config, settings, index), PLUGIN_NAME)


class CoversCheckPlugin:
    """Session-scoped half of the plugin, registered only when enabled."""

    def __init__(self, config: pytest.Config, settings: Config, index: SymbolIndex) -> None:
        self.config = config
        self.settings = settings
        self.index = index

    @pytest.hookimpl(wrapper=True, tryfirst=True)
    def pytest_runtest_makereport(self, item: pytest.Item, call: pytest.CallInfo):
        report = yield
        if _is_final_report(call.when, report):
            dispatcher = CompletionDispatcher(
                self.index,
                ReportSink(report),
                annotations_for_item,
                self.is_collecting_coverage,
            )
            dispatcher.on_test_completed(
                TestCase(
                    identifier=item.nodeid,
                    name=item.name,
                    class_name=item.cls.__name__ if getattr(item, "cls", None) else None,
                    origin=item,
                ),
                call.duration,
            )
        return report

    def is_collecting_coverage(self) -> bool:
        """True when pytest-cov is measuring this run."""
        if not self.settings.skip_when_collecting_coverage:
            return False
        if getattr(self.config.option, "no_cov", False):
            return False
        return self.config.pluginmanager.get_plugin("_cov") is not None


# ---------------------------------------------------------------------------
# Failure sink
# ---------------------------------------------------------------------------

class ReportSink:
    """Attaches violations to one pytest TestReport as they are recorded."""

    def __init__(self, report: pytest.TestReport) -> None:
        self.report = report
        self.violations: list[Violation] = []
        self._owns_longrepr = False

    def record_failure(self, test: TestCase, violation: Violation) -> None:
        report = self.report
        self.violations.append(violation)
        report.user_properties.append((USER_PROPERTY, str(violation)))
        if report.passed or report.skipped:
            if report.skipped:
                report.sections.append((f"{REPORT_SECTION}: skip reason", _skip_reason(report)))
            # An xfail marker must not turn the violation into an expected failure.
            if hasattr(report, "wasxfail"):
                del report.wasxfail
            report.outcome = "failed"
            report.longrepr = str(violation)
            self._owns_longrepr = True
        elif self._owns_longrepr:
            report.longrepr = f"{report.longrepr}\n{violation}"
        else:
            # Keep the test's own failure as the main traceback.
            report.sections.append((REPORT_SECTION, str(violation)))


def _is_final_report(when: str, report: pytest.TestReport) -> bool:
    """True for the report that ends a test's setup/call run.

    A test that does not pass setup (skip marker, fixture error) never gets
    a call phase, so its setup report is the last one.
    """
    return when == "call" or (when == "setup" and not report.passed)


def _skip_reason(report: pytest.TestReport) -> str:
    if hasattr(report, "wasxfail"):
        return f"xfail: {report.wasxfail}" if report.wasxfail else "xfail"
    if isinstance(report.longrepr, tuple):
        return str(report.longrepr[2])
    return str(report.longrepr)


# ---------------------------------------------------------------------------
# Annotation extraction
# ---------------------------------------------------------------------------

def annotations_for_item(test: TestCase) -> AnnotationSet:
    """Read the AnnotationSet of the pytest item behind *test*.

    The class docstring (module docstring for module-level tests) carries
    @coversDefaultClass, the test function's docstring carries @covers.
    ``covers`` / ``covers_default_class`` markers add to both.
    """
    item = test.origin
    cls = getattr(item, "cls", None)
    if cls is not None:
        class_doc = cls.__doc__
    else:
        module = getattr(item, "module", None)
        class_doc = module.__doc__ if module is not None else None
    function = getattr(item, "function", None)
    method_doc = function.__doc__ if function is not None else None

    return annotations_from_docstrings(
        class_doc,
        method_doc,
        extra_default_classes=_marker_values(item, DEFAULT_CLASS_MARKER),
        extra_covers=_marker_values(item, COVERS_MARKER),
    )


def _marker_values(item: pytest.Item, name: str) -> list[str]:
    return [
        value.strip()
        for marker in item.iter_markers(name)
        for value in marker.args
        if isinstance(value, str)
    ]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _load_settings(config: pytest.Config) -> Config:
    explicit = config.getoption("covers_config")
    path = explicit or str(config.rootpath / DEFAULT_CONFIG_PATH)
    try:
        settings = load(path, required=bool(explicit))
    except ConfigError as exc:
        raise pytest.UsageError(f"covers-check: {exc}") from exc

    sources = config.getoption("covers_source")
    if sources:
        settings.source_roots = list(sources)
    return settings


def _resolve_root(base: Path, root: str) -> Path:
    path = Path(root)
    return path if path.is_absolute() else base / path
