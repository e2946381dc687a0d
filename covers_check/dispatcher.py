"""Test-completion dispatch and the in-memory failure sink.

Usage:
    sink = ViolationCollector()
    dispatcher = CompletionDispatcher(index, sink, get_annotations)
    dispatcher.on_test_completed(suite)      # TestCase or TestGroup
    sink.violations                          # everything recorded
"""

import logging
from collections.abc import Callable

from covers_check.models import AnnotationSet, TestCase, TestGroup, TestNode, Violation
from covers_check.validator import check_covers

logger = logging.getLogger(__name__)


class ViolationCollector:
    """Failure sink that keeps every recorded violation in order."""

    def __init__(self) -> None:
        self.violations: list[Violation] = []
        self.failed_tests: dict[str, list[Violation]] = {}

    def record_failure(self, test: TestCase, violation: Violation) -> None:
        self.violations.append(violation)
        self.failed_tests.setdefault(test.identifier, []).append(violation)


def _never_collecting() -> bool:
    return False


class CompletionDispatcher:
    """Runs the @covers check for every test a completion event carries.

    Holds no state between events; the sink decides what a recorded
    violation does to the test's outcome.
    """

    def __init__(
        self,
        resolver,
        sink,
        get_annotations: Callable[[TestCase], AnnotationSet],
        is_collecting_coverage: Callable[[], bool] = _never_collecting,
    ) -> None:
        self._resolver = resolver
        self._sink = sink
        self._get_annotations = get_annotations
        self._is_collecting_coverage = is_collecting_coverage

    def on_test_completed(self, test: TestNode, elapsed: float = 0.0) -> None:
        # A coverage run already does this work.
        if self._is_collecting_coverage():
            logger.debug("Coverage collection active, skipping %s", _node_name(test))
            return
        self._dispatch(test)

    def _dispatch(self, test: TestNode) -> None:
        if isinstance(test, TestCase):
            self._check(test)
        elif isinstance(test, TestGroup):
            for child in test.tests:
                self._dispatch(child)
        else:
            raise TypeError(f"Cannot dispatch completion of {type(test).__name__}")

    def _check(self, test: TestCase) -> None:
        annotations = self._get_annotations(test)
        violations = check_covers(test, annotations, self._resolver, self._sink)
        if violations:
            logger.debug("%s: %d @covers violation(s)", test.identifier, len(violations))


def _node_name(test: TestNode) -> str:
    return test.identifier if isinstance(test, TestCase) else getattr(test, "name", repr(test))
