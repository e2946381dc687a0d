"""Tests for covers_check/annotations.py"""

from covers_check.annotations import annotations_from_docstrings, parse_covers, parse_docblock
from covers_check.models import AnnotationSet, CoversReference


# ---------------------------------------------------------------------------
# parse_docblock()
# ---------------------------------------------------------------------------

def test_parse_docblock_keeps_order_and_multiplicity():
    tags = parse_docblock("""Render tests.

        @covers shop.widgets.Widget::render
        @covers ::refresh
        @group slow
        """)
    assert tags["covers"] == ["shop.widgets.Widget::render", "::refresh"]
    assert tags["group"] == ["slow"]


def test_parse_docblock_tag_without_value_is_empty_string():
    tags = parse_docblock("@covers\n@covers   \n")
    assert tags == {"covers": ["", ""]}


def test_parse_docblock_strips_trailing_whitespace():
    assert parse_docblock("  @coversDefaultClass shop.Widget   \r\n") == {
        "coversDefaultClass": ["shop.Widget"]
    }


def test_parse_docblock_ignores_inline_at_signs():
    assert parse_docblock("Mail ops@example.com about @covers issues") == {}


def test_parse_docblock_empty_input():
    assert parse_docblock(None) == {}
    assert parse_docblock("") == {}


# ---------------------------------------------------------------------------
# annotations_from_docstrings()
# ---------------------------------------------------------------------------

def test_default_class_from_class_doc_and_covers_from_method_doc():
    annotations = annotations_from_docstrings(
        "@coversDefaultClass shop.Widget\n@covers ::ignored_here",
        "@covers ::render\n@coversDefaultClass ignored.Too",
    )
    assert annotations == AnnotationSet(default_classes=("shop.Widget",), covers=("::render",))
    assert annotations.default_class == "shop.Widget"


def test_marker_values_are_appended():
    annotations = annotations_from_docstrings(
        "@coversDefaultClass shop.Widget",
        "@covers ::render",
        extra_default_classes=["shop.Gadget"],
        extra_covers=["::spin"],
    )
    assert annotations.default_classes == ("shop.Widget", "shop.Gadget")
    assert annotations.covers == ("::render", "::spin")


def test_no_docstrings_is_empty():
    annotations = annotations_from_docstrings(None, None)
    assert annotations.is_empty()
    assert annotations.default_class is None


# ---------------------------------------------------------------------------
# parse_covers()
# ---------------------------------------------------------------------------

def test_parse_covers_type_and_member():
    assert parse_covers("shop.Widget::render") == CoversReference(
        raw_text="shop.Widget::render", type_name="shop.Widget", member_name="render"
    )


def test_parse_covers_bare_type():
    ref = parse_covers("shop.Widget")
    assert ref.type_name == "shop.Widget"
    assert ref.member_name == ""
    assert not ref.uses_default_class


def test_parse_covers_member_only_uses_default_class():
    ref = parse_covers("::render")
    assert ref.type_name == ""
    assert ref.member_name == "render"
    assert ref.uses_default_class


def test_parse_covers_ignores_after_second_separator():
    ref = parse_covers("shop.Widget::render::extra")
    assert (ref.type_name, ref.member_name) == ("shop.Widget", "render")
