import logging

import pytest

from pathlib import Path
from xsdcases.catalog import SchemaLoadError, build_catalog
from xsdcases.model import UNBOUNDED, ComplexTypeDecl, Compositor, SimpleTypeDecl

__root_dir__ = Path(__file__).parent.parent
examples = __root_dir__ / "examples"

XS_HEADER = '<xs:schema xmlns:xs="http://www.w3.org/2001/XMLSchema"'


def write(path: Path, body: str, attributes: str = "") -> Path:
    path.write_text(f'<?xml version="1.0"?>\n{XS_HEADER} {attributes}>\n{body}\n</xs:schema>\n')
    return path


def test_missing_file(tmp_path):
    with pytest.raises(SchemaLoadError, match="not found"):
        build_catalog(str(tmp_path / "missing.xsd"))


def test_malformed_xml(tmp_path):
    path = tmp_path / "broken.xsd"
    path.write_text("<xs:schema xmlns:xs='http://www.w3.org/2001/XMLSchema'>")
    with pytest.raises(SchemaLoadError, match="Invalid XML"):
        build_catalog(str(path))


def test_root_must_be_schema(tmp_path):
    path = tmp_path / "plain.xml"
    path.write_text("<library/>")
    with pytest.raises(SchemaLoadError, match="must be xs:schema"):
        build_catalog(str(path))


def test_library_declarations():
    catalog = build_catalog(str(examples / "library.xsd"))
    assert list(catalog.elements) == ["library"]
    assert set(catalog.types) == {"BookType", "StatusType", "IsbnType"}
    assert catalog.target_namespace == ""
    assert catalog.default_prefix is None

    library = catalog.elements["library"]
    assert library.complex_type is not None
    content = library.complex_type.content
    assert content.compositor is Compositor.SEQUENCE
    book = content.particles[0]
    assert (book.name, book.min_occurs, book.max_occurs) == ("book", 1, 3)
    assert library.complex_type.attributes[0].name == "status"
    assert library.complex_type.attributes[0].use == "required"

    book_type = catalog.types["BookType"]
    assert isinstance(book_type, ComplexTypeDecl)
    author = book_type.content.particles[2]
    assert author.max_occurs is UNBOUNDED
    assert isinstance(catalog.types["StatusType"], SimpleTypeDecl)
    assert catalog.types["StatusType"].restriction.enumeration == ("active", "inactive")


def test_catalog_is_read_only():
    catalog = build_catalog(str(examples / "library.xsd"))
    with pytest.raises(TypeError):
        catalog.elements["other"] = catalog.elements["library"]


def test_include_and_import():
    catalog = build_catalog(str(examples / "order.xsd"))
    assert len(catalog.documents) == 3
    assert set(catalog.elements) == {"order", "item"}
    assert {"OrderIdType", "CurrencyType", "AddressType", "CountryType"} <= set(catalog.types)
    assert catalog.default_prefix == "ord"
    assert catalog.namespaces["addr"] == "urn:example:address"

    order = catalog.elements["order"]
    assert order.namespace == "urn:example:order"
    assert order.qualified

    # local elements of the imported type keep their own namespace
    street = catalog.types["AddressType"].content.particles[0]
    assert street.namespace == "urn:example:address"
    assert street.qualified


def test_chameleon_include_takes_including_namespace(tmp_path):
    write(tmp_path / "parts.xsd", '<xs:element name="part" type="xs:string"/>')
    root = write(
        tmp_path / "root.xsd",
        '<xs:include schemaLocation="parts.xsd"/>',
        'targetNamespace="urn:example:root"',
    )
    catalog = build_catalog(str(root))
    assert catalog.elements["part"].namespace == "urn:example:root"
    # no prefix bound to the target namespace
    assert catalog.default_prefix == "tns"
    assert catalog.namespaces["tns"] == "urn:example:root"


def test_include_cycle_is_loaded_once():
    catalog = build_catalog(str(examples / "shelf.xsd"))
    assert len(catalog.documents) == 2
    assert set(catalog.elements) == {"shelf"}
    assert "SlotType" in catalog.types


def test_missing_include_is_skipped(tmp_path, caplog):
    root = write(
        tmp_path / "root.xsd",
        '<xs:include schemaLocation="nowhere.xsd"/>\n<xs:element name="root" type="xs:string"/>',
    )
    with caplog.at_level(logging.WARNING):
        catalog = build_catalog(str(root))
    assert "root" in catalog.elements
    assert "nowhere.xsd" in caplog.text


def test_later_declaration_wins(tmp_path):
    root = write(
        tmp_path / "root.xsd",
        '<xs:element name="dup" type="xs:string"/>\n<xs:element name="dup" type="xs:int"/>',
    )
    catalog = build_catalog(str(root))
    assert catalog.elements["dup"].type_name == "xs:int"


def test_unqualified_local_elements(tmp_path):
    root = write(
        tmp_path / "root.xsd",
        """
        <xs:element name="root">
          <xs:complexType>
            <xs:sequence>
              <xs:element name="plain" type="xs:string"/>
              <xs:element name="marked" type="xs:string" form="qualified"/>
            </xs:sequence>
          </xs:complexType>
        </xs:element>
        """,
        'targetNamespace="urn:example:form" xmlns:f="urn:example:form"',
    )
    catalog = build_catalog(str(root))
    plain, marked = catalog.elements["root"].complex_type.content.particles
    assert not plain.qualified
    assert marked.qualified


def test_source_lines_are_recorded():
    catalog = build_catalog(str(examples / "library.xsd"))
    assert catalog.elements["library"].line == 4


def test_malformed_occurrence_in_root(tmp_path):
    root = write(
        tmp_path / "root.xsd",
        """
        <xs:element name="root">
          <xs:complexType>
            <xs:sequence>
              <xs:element name="child" type="xs:string" maxOccurs="many"/>
            </xs:sequence>
          </xs:complexType>
        </xs:element>
        """,
    )
    with pytest.raises(SchemaLoadError, match="many"):
        build_catalog(str(root))


def test_malformed_occurrence_in_include_is_skipped(tmp_path, caplog):
    write(
        tmp_path / "parts.xsd",
        """
        <xs:complexType name="PartsType">
          <xs:sequence>
            <xs:element name="part" type="xs:string" minOccurs="few"/>
          </xs:sequence>
        </xs:complexType>
        <xs:element name="spare" type="xs:string"/>
        """,
    )
    root = write(
        tmp_path / "root.xsd",
        '<xs:include schemaLocation="parts.xsd"/>\n<xs:element name="root" type="xs:string"/>',
    )
    with caplog.at_level(logging.WARNING):
        catalog = build_catalog(str(root))
    assert set(catalog.elements) == {"root"}
    assert "PartsType" not in catalog.types
    assert catalog.documents == (str(root),)
    assert "parts.xsd" in caplog.text
