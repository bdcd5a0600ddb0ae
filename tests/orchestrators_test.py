import pytest

from pathlib import Path
from xsdcases import TestCaseGenerator
from xsdcases.catalog import build_catalog
from xsdcases.constraints import ConstraintExtractor
from xsdcases.model import TestKind
from xsdcases.orchestrators import (
    CardinalityOrchestrator,
    EnumerationOrchestrator,
    SentinelFactory,
    sanitize,
)
from xsdcases.output import MemorySink
from xsdcases.resolver import Resolver

__root_dir__ = Path(__file__).parent.parent
examples = __root_dir__ / "examples"


def orchestrators_for(name: str):
    catalog = build_catalog(str(examples / name))
    resolver = Resolver(catalog)
    extractor = ConstraintExtractor(resolver)
    return (
        CardinalityOrchestrator(catalog, extractor),
        EnumerationOrchestrator(catalog, resolver, extractor, SentinelFactory("INVALID_")),
    )


def test_bounded_cardinality():
    cardinality, _ = orchestrators_for("library.xsd")
    points = {p.name: p for p in cardinality.test_points("library")}
    assert {name: (p.occurrences, p.expected_valid) for name, p in points.items()} == {
        "library_book_min": (1, True),
        "library_book_max": (3, True),
        "library_book_between": (2, True),
        "library_book_lessThanMin": (0, False),
        "library_book_moreThanMax": (4, False),
    }
    assert all(p.kind is TestKind.CARDINALITY and p.target_path == ("book",) for p in points.values())
    assert points["library_book_min"].relative_path == "positive/cardinality/library_book_min.xml"
    assert points["library_book_moreThanMax"].relative_path == "negative/cardinality/library_book_moreThanMax.xml"


def test_optional_and_exact_children():
    cardinality, _ = orchestrators_for("order.xsd")
    names = {p.name for p in cardinality.test_points("order")}
    # 1..1: no between case
    assert {"order_orderId_min", "order_orderId_max", "order_orderId_lessThanMin", "order_orderId_moreThanMax"} <= names
    assert "order_orderId_between" not in names
    # 0..2: nothing below the minimum
    assert {"order_note_max", "order_note_between", "order_note_moreThanMax"} <= names
    assert "order_note_min" not in names
    assert "order_note_lessThanMin" not in names
    # references are named by their local part
    assert "order_item_between" in names


def test_unbounded_child_has_no_upper_cases(tmp_path):
    path = tmp_path / "list.xsd"
    path.write_text("""<?xml version="1.0"?>
<xs:schema xmlns:xs="http://www.w3.org/2001/XMLSchema">
  <xs:element name="list">
    <xs:complexType>
      <xs:sequence>
        <xs:element name="entry" type="xs:string" minOccurs="2" maxOccurs="unbounded"/>
      </xs:sequence>
    </xs:complexType>
  </xs:element>
</xs:schema>
""")
    catalog = build_catalog(str(path))
    cardinality = CardinalityOrchestrator(catalog, ConstraintExtractor(Resolver(catalog)))
    points = {p.name: p.occurrences for p in cardinality.test_points("list")}
    assert points == {"list_entry_min": 2, "list_entry_lessThanMin": 1}


def test_attribute_enumeration():
    _, enumeration = orchestrators_for("library.xsd")
    points = list(enumeration.test_points("library"))
    assert [p.name for p in points] == [
        "library_status_enum_active",
        "library_status_enum_inactive",
        "library_status_enum_invalid",
    ]
    assert [p.expected_valid for p in points] == [True, True, False]
    assert all(p.attribute == "status" and p.target_path == () for p in points)
    assert points[-1].value.startswith("INVALID_")


def test_child_and_child_attribute_enumeration():
    _, enumeration = orchestrators_for("order.xsd")
    points = {p.name: p for p in enumeration.test_points("order")}
    assert "order_currency_enum_EUR" in points
    assert "order_priority_enum_high" in points
    assert points["order_priority_enum_high"].target_path == ("priority",)
    assert points["order_shipTo_kind_enum_work"].attribute == "kind"
    assert points["order_item_unit_enum_pallet"].target_path == ("item",)
    # item is a global element, so its own cases follow
    assert "item_unit_enum_box" in points
    assert not points["order_item_unit_enum_invalid"].expected_valid


def test_visited_elements_are_skipped():
    _, enumeration = orchestrators_for("order.xsd")
    visited = set()
    first = list(enumeration.test_points("order", visited))
    assert visited == {"order", "item"}
    assert list(enumeration.test_points("item", visited)) == []
    assert first


def test_recursive_element_terminates():
    _, enumeration = orchestrators_for("recursive.xsd")
    names = [p.name for p in enumeration.test_points("category")]
    assert names == [
        "category_visibility_enum_public",
        "category_visibility_enum_private",
        "category_visibility_enum_invalid",
        "category_category_visibility_enum_public",
        "category_category_visibility_enum_private",
        "category_category_visibility_enum_invalid",
    ]


def test_child_count_follows_minimum():
    _, enumeration = orchestrators_for("shelf.xsd")
    points = list(enumeration.test_points("shelf"))
    assert {p.occurrences for p in points} == {2}


def test_sentinel_avoids_enumeration():
    sentinel = SentinelFactory("X")
    first, second = sentinel(), sentinel()
    assert first != second
    assert first.startswith("X")
    assert sentinel({first}) != first


@pytest.mark.parametrize("value, expected", [
    ("active", "active"),
    ("in-stock", "in_stock"),
    ("a b/c", "a_b_c"),
    ("ÆØÅ", "___"),
])
def test_sanitize(value, expected):
    assert sanitize(value) == expected


def test_colliding_enumeration_names_are_numbered(tmp_path):
    path = tmp_path / "code.xsd"
    path.write_text("""<?xml version="1.0"?>
<xs:schema xmlns:xs="http://www.w3.org/2001/XMLSchema">
  <xs:element name="code">
    <xs:simpleType>
      <xs:restriction base="xs:string">
        <xs:enumeration value="a-b"/>
        <xs:enumeration value="a.b"/>
        <xs:enumeration value="a_b_2"/>
      </xs:restriction>
    </xs:simpleType>
  </xs:element>
</xs:schema>
""")
    catalog = build_catalog(str(path))
    resolver = Resolver(catalog)
    enumeration = EnumerationOrchestrator(catalog, resolver, ConstraintExtractor(resolver))
    points = [p for p in enumeration.test_points("code") if p.expected_valid]
    assert [(p.name, p.value) for p in points] == [
        ("code_enum_a_b", "a-b"),
        ("code_enum_a_b_2", "a.b"),
        ("code_enum_a_b_2_2", "a_b_2"),
    ]

    sink = MemorySink()
    summary = TestCaseGenerator(str(path), sink=sink).run()
    assert summary.positive == 3
    assert len([name for name in sink.files if name.startswith("positive/")]) == 3
