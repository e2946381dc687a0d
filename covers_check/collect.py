"""Static collection of test files for `covers-check check`.

Usage:
    suite, annotations = collect_paths(["tests"])
    dispatcher = CompletionDispatcher(index, sink, annotations.for_test)
    dispatcher.on_test_completed(suite)

Test modules are parsed with ``ast`` and never imported. Collection follows
pytest's default conventions: ``test_*.py`` / ``*_test.py`` files,
``Test*`` classes and ``test*`` functions. Annotations come from docstrings
and from ``pytest.mark.covers`` / ``pytest.mark.covers_default_class``
decorators and ``pytestmark`` assignments.
"""

import ast
import logging
from collections.abc import Iterable, Iterator
from pathlib import Path

from covers_check.annotations import annotations_from_docstrings
from covers_check.models import AnnotationSet, TestCase, TestGroup, TestNode

logger = logging.getLogger(__name__)

COVERS_MARKER = "covers"
DEFAULT_CLASS_MARKER = "covers_default_class"

_SKIPPED_DIRS = {"__pycache__"}

# marker name -> values, per scope
_Markers = dict[str, list[str]]


class StaticAnnotations:
    """AnnotationSets gathered during collection, keyed by test identifier."""

    def __init__(self) -> None:
        self._by_test: dict[str, AnnotationSet] = {}

    def add(self, identifier: str, annotations: AnnotationSet) -> None:
        self._by_test[identifier] = annotations

    def for_test(self, test: TestCase) -> AnnotationSet:
        return self._by_test.get(test.identifier, AnnotationSet())

    def __len__(self) -> int:
        return len(self._by_test)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def collect_paths(paths: Iterable[str | Path]) -> tuple[TestGroup, StaticAnnotations]:
    """Collect every test under *paths* (files or directories)."""
    annotations = StaticAnnotations()
    suite = TestGroup(name="session")
    for path in paths:
        for test_file in _iter_test_files(Path(path)):
            group = collect_file(test_file, annotations)
            if group is not None:
                suite.tests.append(group)
    return suite, annotations


def collect_file(path: Path, annotations: StaticAnnotations) -> TestGroup | None:
    """Collect the tests of one module, or None if it cannot be parsed."""
    try:
        tree = ast.parse(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, SyntaxError, ValueError) as exc:
        logger.warning("Skipping '%s': %s", path, exc)
        return None

    module_id = path.as_posix()
    module_doc = ast.get_docstring(tree, clean=False)
    module_markers = _pytestmark(tree.body)
    group = TestGroup(name=module_id)

    for node in tree.body:
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)) and node.name.startswith("test"):
            group.tests.append(
                _collect_function(node, module_id, None, module_doc, [module_markers], annotations)
            )
        elif isinstance(node, ast.ClassDef) and node.name.startswith("Test"):
            group.tests.append(_collect_class(node, module_id, [module_markers], annotations))
    return group


def count_tests(node: TestNode) -> int:
    return sum(1 for _ in iter_tests(node))


def iter_tests(node: TestNode) -> Iterator[TestCase]:
    if isinstance(node, TestCase):
        yield node
        return
    for child in node.tests:
        yield from iter_tests(child)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _iter_test_files(path: Path) -> Iterator[Path]:
    if path.is_file():
        yield path
        return
    if not path.is_dir():
        logger.warning("Test path '%s' does not exist, skipping", path)
        return
    for candidate in sorted(path.rglob("*.py")):
        relative = candidate.relative_to(path)
        if any(part.startswith(".") or part in _SKIPPED_DIRS for part in relative.parts[:-1]):
            continue
        if candidate.name.startswith("test_") or candidate.name.endswith("_test.py"):
            yield candidate


def _collect_class(
    node: ast.ClassDef,
    parent_id: str,
    outer_markers: list[_Markers],
    annotations: StaticAnnotations,
) -> TestGroup:
    class_id = f"{parent_id}::{node.name}"
    class_doc = ast.get_docstring(node, clean=False)
    markers = [_merge(_markers_from(node.decorator_list), _pytestmark(node.body)), *outer_markers]
    group = TestGroup(name=class_id)

    for item in node.body:
        if isinstance(item, (ast.FunctionDef, ast.AsyncFunctionDef)) and item.name.startswith("test"):
            group.tests.append(_collect_function(item, class_id, node.name, class_doc, markers, annotations))
        elif isinstance(item, ast.ClassDef) and item.name.startswith("Test"):
            group.tests.append(_collect_class(item, class_id, markers, annotations))
    return group


def _collect_function(
    node: ast.FunctionDef | ast.AsyncFunctionDef,
    parent_id: str,
    class_name: str | None,
    class_doc: str | None,
    outer_markers: list[_Markers],
    annotations: StaticAnnotations,
) -> TestCase:
    # Closest scope first, the order pytest's iter_markers() uses.
    scopes = [_markers_from(node.decorator_list), *outer_markers]
    test = TestCase(identifier=f"{parent_id}::{node.name}", name=node.name, class_name=class_name)
    annotations.add(
        test.identifier,
        annotations_from_docstrings(
            class_doc,
            ast.get_docstring(node, clean=False),
            extra_default_classes=[v for scope in scopes for v in scope.get(DEFAULT_CLASS_MARKER, [])],
            extra_covers=[v for scope in scopes for v in scope.get(COVERS_MARKER, [])],
        ),
    )
    return test


def _pytestmark(body: list[ast.stmt]) -> _Markers:
    """Markers assigned to ``pytestmark`` in a module or class body."""
    for stmt in body:
        if not isinstance(stmt, ast.Assign):
            continue
        if any(isinstance(t, ast.Name) and t.id == "pytestmark" for t in stmt.targets):
            value = stmt.value
            items = value.elts if isinstance(value, (ast.List, ast.Tuple)) else [value]
            return _markers_from(items)
    return {}


def _markers_from(nodes: Iterable[ast.expr]) -> _Markers:
    markers: _Markers = {}
    for node in nodes:
        if not isinstance(node, ast.Call):
            continue
        parts = _dotted_name(node.func).split(".")
        if len(parts) < 2 or parts[-2] != "mark" or parts[-1] not in (COVERS_MARKER, DEFAULT_CLASS_MARKER):
            continue
        values = [
            arg.value.strip()
            for arg in node.args
            if isinstance(arg, ast.Constant) and isinstance(arg.value, str)
        ]
        markers.setdefault(parts[-1], []).extend(values)
    return markers


def _merge(*scopes: _Markers) -> _Markers:
    merged: _Markers = {}
    for scope in scopes:
        for name, values in scope.items():
            merged.setdefault(name, []).extend(values)
    return merged


def _dotted_name(node: ast.AST) -> str:
    """Get dotted name from an AST node (e.g. 'pytest.mark.covers')."""
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        parent = _dotted_name(node.value)
        return f"{parent}.{node.attr}" if parent else node.attr
    return ""
