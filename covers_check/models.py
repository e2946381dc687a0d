"""Data models shared by the validator, the dispatcher and the reporters.

Contains:
    - AnnotationSet     raw @coversDefaultClass / @covers values of one test
    - CoversReference   one parsed @covers entry
    - Violation         one coding-standards failure attributed to a test
    - TestCase          a single executable test (leaf)
    - TestGroup         a grouping of tests (module, class, suite)
"""

from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class AnnotationSet:
    default_classes: tuple[str, ...] = ()
    covers: tuple[str, ...] = ()

    @property
    def default_class(self) -> str | None:
        """The first @coversDefaultClass value, the only one ever used."""
        return self.default_classes[0] if self.default_classes else None

    def is_empty(self) -> bool:
        return not self.default_classes and not self.covers


@dataclass(frozen=True)
class CoversReference:
    raw_text: str
    type_name: str = ""
    member_name: str = ""
    uses_default_class: bool = False


@dataclass(frozen=True)
class Violation:
    message: str
    test_identifier: str

    def __str__(self) -> str:
        return f"{self.message}: {self.test_identifier}"


@dataclass
class TestCase:
    identifier: str
    name: str
    class_name: str | None = None
    # The runner's own object for this test (e.g. a pytest Item).
    origin: Any = field(default=None, repr=False, compare=False)

    # Keep pytest from collecting this class when imported in test modules.
    __test__ = False


@dataclass
class TestGroup:
    name: str
    tests: list["TestNode"] = field(default_factory=list)

    __test__ = False


TestNode = Union[TestCase, TestGroup]
