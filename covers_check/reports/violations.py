"""Violation report for `covers-check check`.

Functions:
    build_report(violations, tests_checked, paths) -> dict

The report lists every violation with the test it belongs to, plus summary
counts, ready to be serialised as JSON.
"""

from collections.abc import Iterable
from datetime import datetime, timezone

from covers_check.models import Violation


def build_report(violations: list[Violation], tests_checked: int, paths: Iterable[str]) -> dict:
    cleaned = [_violation_to_dict(v) for v in violations]
    return {
        "report_type":  "covers_check",
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "paths":        list(paths),
        "summary":      _build_summary(violations, tests_checked),
        "violations":   cleaned,
    }


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _violation_to_dict(violation: Violation) -> dict:
    return {
        "test":    violation.test_identifier,
        "message": violation.message,
    }


def _build_summary(violations: list[Violation], tests_checked: int) -> dict:
    return {
        "tests_checked":         tests_checked,
        "tests_with_violations": len({v.test_identifier for v in violations}),
        "violations":            len(violations),
    }
