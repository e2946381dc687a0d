"""Docblock tag parsing for @covers and @coversDefaultClass.

Usage:
    tags = parse_docblock(func.__doc__)          # {"covers": ["::render"]}
    annotations = annotations_from_docstrings(cls.__doc__, func.__doc__)
    ref = parse_covers("shop.widgets.Widget::render")
"""

import re
from collections.abc import Iterable

from covers_check.models import AnnotationSet, CoversReference

COVERS_TAG = "covers"
DEFAULT_CLASS_TAG = "coversDefaultClass"
SEPARATOR = "::"

_TAG_RE = re.compile(
    r"^[ \t]*@(?P<name>[A-Za-z_-]+)(?:[ \t]+(?P<value>.*?))?[ \t]*\r?$",
    re.MULTILINE,
)


def parse_docblock(text: str | None) -> dict[str, list[str]]:
    """Return every ``@tag value`` line of *text*, grouped by tag name.

    Values keep their declaration order and multiplicity. A tag with nothing
    after it yields an empty string, so ``@covers`` on its own is still
    reported as declared.
    """
    tags: dict[str, list[str]] = {}
    if not text:
        return tags
    for match in _TAG_RE.finditer(text):
        value = (match.group("value") or "").strip()
        tags.setdefault(match.group("name"), []).append(value)
    return tags


def annotations_from_docstrings(
    class_doc: str | None,
    method_doc: str | None,
    extra_default_classes: Iterable[str] = (),
    extra_covers: Iterable[str] = (),
) -> AnnotationSet:
    """Build the AnnotationSet of one test.

    @coversDefaultClass is read at class scope and @covers at method scope,
    mirroring where each tag belongs. Values gathered elsewhere (pytest
    markers) are appended after the docstring values.
    """
    class_tags = parse_docblock(class_doc)
    method_tags = parse_docblock(method_doc)
    return AnnotationSet(
        default_classes=(*class_tags.get(DEFAULT_CLASS_TAG, []), *extra_default_classes),
        covers=(*method_tags.get(COVERS_TAG, []), *extra_covers),
    )


def parse_covers(raw: str) -> CoversReference:
    """Split a @covers entry into its type and member parts.

    ``Type::member`` gives both, ``Type`` only the type and ``::member``
    only the member. Anything after a second separator is dropped.
    """
    if SEPARATOR not in raw:
        return CoversReference(raw_text=raw, type_name=raw)
    type_name, member_name = raw.split(SEPARATOR, 2)[:2]
    return CoversReference(
        raw_text=raw,
        type_name=type_name,
        member_name=member_name,
        uses_default_class=not type_name,
    )
