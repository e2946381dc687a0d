"""@covers / @coversDefaultClass validation for a single test.

Usage:
    violations = check_covers(test, annotations, index, sink)

Every problem found is handed to ``sink.record_failure(test, violation)`` as
soon as it is detected and also returned, in detection order. Problems with
one @covers entry never stop the remaining entries from being checked.
"""

from collections.abc import Callable

from covers_check.annotations import parse_covers
from covers_check.models import AnnotationSet, TestCase, Violation


def check_covers(test: TestCase, annotations: AnnotationSet, resolver, sink) -> list[Violation]:
    """Validate the coverage annotations of *test*.

    Args:
        test:        the test the annotations were read from
        annotations: its raw @coversDefaultClass / @covers values
        resolver:    a SymbolIndex (or anything answering the same queries)
        sink:        receives each violation through ``record_failure``
    """
    violations: list[Violation] = []

    def fail(message: str) -> None:
        violation = Violation(message=message, test_identifier=test.identifier)
        violations.append(violation)
        sink.record_failure(test, violation)

    # The default class has to be settled first: entries without a type
    # fall back to it, but only when it resolved.
    default_class = ""
    valid_default_class = False
    if annotations.default_classes:
        if len(annotations.default_classes) > 1:
            fail("@coversDefaultClass has too many values")
        default_class = annotations.default_class or ""
        valid_default_class = resolver.type_exists(default_class)
        if not valid_default_class and resolver.is_interface(default_class):
            fail(f"@coversDefaultClass refers to an interface '{default_class}' and those can not be tested.")
        elif not valid_default_class:
            fail(f"@coversDefaultClass does not exist '{default_class}'")

    for raw in annotations.covers:
        _check_entry(raw, default_class, valid_default_class, resolver, fail)

    return violations


def _check_entry(
    raw: str,
    default_class: str,
    valid_default_class: bool,
    resolver,
    fail: Callable[[str], None],
) -> None:
    if not raw.strip():
        fail("@covers should not be empty")
        return
    if "()" in raw:
        fail("@covers invalid syntax: Do not use '()'")

    ref = parse_covers(raw)
    type_name = ref.type_name
    member_name = ref.member_name
    type_confirmed = False

    if type_name:
        if resolver.type_exists(type_name):
            type_confirmed = True
        elif not member_name:
            # Either a misspelt class or a method missing its '::'.
            fail(f"@covers invalid syntax: Needs '::' or class does not exist in {raw}")
            return
        elif resolver.is_interface(type_name):
            fail(f"@covers refers to an interface '{type_name}' and those can not be tested.")
        else:
            fail(f"@covers class does not exist {type_name}")
            return
    elif not default_class:
        # No class anywhere: the entry names a module-level function.
        if not resolver.function_exists(member_name):
            fail(f"@covers global method does not exist {member_name}")
    elif valid_default_class:
        type_name = default_class
        type_confirmed = True

    if type_confirmed and member_name and not resolver.method_exists(type_name, member_name):
        fail(f"@covers method does not exist {type_name}::{member_name}")
