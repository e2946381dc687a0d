"""Symbol index answering the existence questions behind @covers.

Usage:
    index = SymbolIndex.from_paths(["src"])
    index.type_exists("shop.widgets.Widget")               # True
    index.is_interface("shop.ports.Renderer")              # True for a Protocol
    index.function_exists("slugify")                       # bare or dotted name
    index.method_exists("shop.widgets.Widget", "render")   # declared or inherited

The index is built ahead of validation by parsing the source roots with
``ast``; nothing under test is imported.
"""

import ast
import importlib
import logging
import sys
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_INTERFACE_BASES: tuple[str, ...] = ("Protocol", "Interface")

_MAX_ALIAS_HOPS = 20
_SKIPPED_DIRS = {"__pycache__"}


class UnresolvableTypeError(LookupError):
    """Raised when a type that the caller claims exists is not in the index."""


@dataclass
class TypeSymbol:
    name: str
    methods: set[str] = field(default_factory=set)
    # Candidate qualified names; resolved lazily through the alias table.
    bases: list[str] = field(default_factory=list)
    is_interface: bool = False
    # Module the class is declared in; empty for classes added by hand.
    module: str = ""


class SymbolIndex:
    """Registry of classes, interfaces and module-level functions."""

    def __init__(self, interface_bases: Iterable[str] = DEFAULT_INTERFACE_BASES) -> None:
        self.interface_bases = frozenset(interface_bases)
        self._types: dict[str, TypeSymbol] = {}
        self._functions: set[str] = set()
        self._function_names: set[str] = set()
        self._aliases: dict[str, str] = {}

    @classmethod
    def from_paths(
        cls,
        roots: Iterable[str | Path],
        interface_bases: Iterable[str] = DEFAULT_INTERFACE_BASES,
    ) -> "SymbolIndex":
        """Index every module found under *roots*.

        Each root is an import root: ``<root>/pkg/mod.py`` is indexed as
        ``pkg.mod``. A root that is a single ``.py`` file is indexed under
        its stem.
        """
        index = cls(interface_bases)
        for root in roots:
            index.add_root(Path(root))
        logger.debug(
            "Indexed %d types and %d functions",
            len(index._types),
            len(index._functions),
        )
        return index

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def add_class(
        self,
        name: str,
        methods: Iterable[str] = (),
        bases: Iterable[str] = (),
        interface: bool = False,
        module: str = "",
    ) -> TypeSymbol:
        symbol = TypeSymbol(
            name=name,
            methods=set(methods),
            bases=list(bases),
            is_interface=interface,
            module=module,
        )
        self._types[name] = symbol
        return symbol

    def add_function(self, name: str) -> None:
        self._functions.add(name)
        self._function_names.add(name.rpartition(".")[2])

    def add_alias(self, name: str, target: str) -> None:
        self._aliases[name] = target

    def add_root(self, root: Path) -> None:
        if root.is_file():
            self._index_file(root, root.stem, is_package=False)
            return
        if not root.is_dir():
            logger.warning("Source root '%s' does not exist, skipping", root)
            return

        for path in sorted(root.rglob("*.py")):
            relative = path.relative_to(root)
            if any(part.startswith(".") or part in _SKIPPED_DIRS for part in relative.parts[:-1]):
                continue
            parts = list(relative.with_suffix("").parts)
            is_package = parts[-1] == "__init__"
            if is_package:
                parts = parts[:-1]
            if not parts:
                continue
            self._index_file(path, ".".join(parts), is_package)

    def add_module(self, module_name: str, source: str, is_package: bool = False) -> None:
        """Index the top-level definitions and imports of one module.

        Raises:
            SyntaxError: if *source* is not valid Python.
        """
        tree = ast.parse(source)
        package = module_name if is_package else module_name.rpartition(".")[0]

        for node in tree.body:
            if isinstance(node, ast.Import):
                for alias in node.names:
                    if alias.asname:
                        self.add_alias(f"{module_name}.{alias.asname}", alias.name)
                    else:
                        top = alias.name.split(".")[0]
                        self.add_alias(f"{module_name}.{top}", top)
            elif isinstance(node, ast.ImportFrom):
                origin = _absolute_module(package, node.module, node.level)
                if origin is None:
                    continue
                for alias in node.names:
                    if alias.name == "*":
                        continue
                    self.add_alias(f"{module_name}.{alias.asname or alias.name}", f"{origin}.{alias.name}")
            elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                self.add_function(f"{module_name}.{node.name}")
            elif isinstance(node, ast.ClassDef):
                self._add_class_node(module_name, module_name, node)

    def _add_class_node(self, module_name: str, scope: str, node: ast.ClassDef) -> None:
        qualname = f"{scope}.{node.name}"
        methods = {
            item.name for item in node.body if isinstance(item, (ast.FunctionDef, ast.AsyncFunctionDef))
        }
        bases: list[str] = []
        interface = False
        for base in node.bases:
            # Protocol[T], Generic[T] and friends
            if isinstance(base, ast.Subscript):
                base = base.value
            dotted = _dotted_name(base)
            if not dotted:
                continue
            if dotted.rpartition(".")[2] in self.interface_bases:
                interface = True
            bases.append(f"{module_name}.{dotted}")
        self.add_class(qualname, methods, bases, interface, module_name)

        for item in node.body:
            if isinstance(item, ast.ClassDef):
                self._add_class_node(module_name, qualname, item)

    def _index_file(self, path: Path, module_name: str, is_package: bool) -> None:
        try:
            source = path.read_text(encoding="utf-8")
            self.add_module(module_name, source, is_package)
        except (OSError, UnicodeDecodeError, SyntaxError, ValueError) as exc:
            logger.warning("Skipping '%s': %s", path, exc)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def type_exists(self, name: str) -> bool:
        """True for a declared class or mixin, False for interfaces."""
        symbol = self._lookup(name)
        return symbol is not None and not symbol.is_interface

    def is_interface(self, name: str) -> bool:
        symbol = self._lookup(name)
        return symbol is not None and symbol.is_interface

    def function_exists(self, name: str) -> bool:
        """True for a module-level function, by bare or qualified name."""
        if not name:
            return False
        if "." not in name:
            return name in self._function_names
        return self._canonical(name) in self._functions

    def method_exists(self, type_name: str, member_name: str) -> bool:
        """True if *type_name* declares *member_name* or inherits it.

        Bases outside the index are looked up on the real class when they
        are builtins or live in the standard library. Any other base
        (third-party, unparseable) can not be inspected, so a member that
        might come from it is given the benefit of the doubt.

        Raises:
            UnresolvableTypeError: if *type_name* is not in the index.
        """
        symbol = self._lookup(type_name)
        if symbol is None:
            raise UnresolvableTypeError(f"Type '{type_name}' is not in the symbol index")

        unknown_bases: list[str] = []
        seen: set[str] = set()
        stack = [symbol]
        while stack:
            current = stack.pop()
            if current.name in seen:
                continue
            seen.add(current.name)
            if member_name in current.methods:
                return True
            for base in current.bases:
                parent = self._lookup(base)
                if parent is not None:
                    stack.append(parent)
                    continue
                found = _external_member(self._external_name(current, base), member_name)
                if found:
                    return True
                if found is None:
                    unknown_bases.append(base)

        if unknown_bases:
            logger.debug(
                "Can not rule out %s::%s, bases %s are not inspectable",
                type_name,
                member_name,
                unknown_bases,
            )
            return True
        return False

    def _lookup(self, name: str) -> TypeSymbol | None:
        if not name:
            return None
        return self._types.get(self._canonical(name))

    def _canonical(self, name: str) -> str:
        """Follow import aliases until *name* stops changing."""
        for _ in range(_MAX_ALIAS_HOPS):
            if name in self._types or name in self._functions:
                return name
            target = self._expand_alias(name)
            if target is None or target == name:
                return name
            name = target
        return name

    def _external_name(self, owner: TypeSymbol, base: str) -> str:
        """Qualified name of a base class that is not in the index."""
        target = self._canonical(base)
        local = f"{owner.module}."
        if owner.module and target == base and base.startswith(local):
            # Neither declared nor imported in the owner's module: a builtin.
            return target[len(local):]
        return target

    def _expand_alias(self, name: str) -> str | None:
        parts = name.split(".")
        for end in range(len(parts), 0, -1):
            prefix = ".".join(parts[:end])
            if prefix in self._aliases:
                return ".".join([self._aliases[prefix], *parts[end:]])
        return None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _dotted_name(node: ast.AST) -> str:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        parent = _dotted_name(node.value)
        return f"{parent}.{node.attr}" if parent else ""
    return ""


def _external_member(class_name: str, member_name: str) -> bool | None:
    """Check *member_name* on a builtin or standard-library class.

    Returns None when the class can not be inspected without importing
    third-party code.
    """
    module_name, _, attr = class_name.rpartition(".")
    module_name = module_name or "builtins"
    if module_name.split(".")[0] not in sys.stdlib_module_names:
        return None
    try:
        module = importlib.import_module(module_name)
    except ImportError:
        return None
    cls = getattr(module, attr, None)
    if not isinstance(cls, type):
        return None
    return hasattr(cls, member_name)


def _absolute_module(package: str, module: str | None, level: int) -> str | None:
    """Turn a (possibly relative) ``from`` import into an absolute module name."""
    if level == 0:
        return module
    parts = package.split(".") if package else []
    if level - 1 > len(parts):
        return None
    base = parts[: len(parts) - (level - 1)]
    if module:
        base.append(module)
    return ".".join(base) or None
