import logging
import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Set, Tuple, Union

from lxml import etree

from .model import (
    AttributeDecl,
    ComplexTypeDecl,
    Compositor,
    ElementDecl,
    ModelGroup,
    Restriction,
    SimpleTypeDecl,
    TypeDecl,
    parse_occurs,
)

logger = logging.getLogger(__name__)

XSD_NAMESPACE = "http://www.w3.org/2001/XMLSchema"
XS = f"{{{XSD_NAMESPACE}}}"

# Checked in this order; the first one present is the content model.
COMPOSITORS = (Compositor.SEQUENCE, Compositor.CHOICE, Compositor.ALL)


class SchemaLoadError(Exception):
    """Raised when the root schema document cannot be loaded."""
    pass


@dataclass(frozen=True)
class SchemaCatalog:
    """Global declarations of a schema and everything it includes or imports."""
    schema_path: str
    target_namespace: str
    default_prefix: Optional[str]
    namespaces: Mapping[str, str] = field(default_factory=dict)
    elements: Mapping[str, ElementDecl] = field(default_factory=dict)
    types: Mapping[str, TypeDecl] = field(default_factory=dict)
    documents: Tuple[str, ...] = ()


@dataclass
class _Document:
    path: str
    root: etree._Element
    target_namespace: str
    element_form_default: str


def _is_xs(node, name: str) -> bool:
    return node.tag == f"{XS}{name}"


def _xs_children(node, *names: str) -> List[etree._Element]:
    tags = {f"{XS}{name}" for name in names}
    return [child for child in node if isinstance(child.tag, str) and child.tag in tags]


def _first_xs_child(node, name: str):
    children = _xs_children(node, name)
    return children[0] if children else None


def _int_or_none(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        logger.debug(f"Ignoring non-integer facet value '{value}'")
        return None


class SchemaCatalogBuilder:
    """Loads a root schema, follows include/import, and indexes global declarations."""

    def __init__(self, schema_path: str):
        self.schema_path = schema_path
        self._parser = etree.XMLParser(remove_comments=True, remove_pis=True, resolve_entities=False)

    def build(self) -> SchemaCatalog:
        root_path = os.path.abspath(self.schema_path)
        if not os.path.isfile(root_path):
            raise SchemaLoadError(f"Schema file not found: {self.schema_path}")

        try:
            root_tree = etree.parse(root_path, self._parser)
        except (etree.XMLSyntaxError, OSError) as e:
            raise SchemaLoadError(f"Invalid XML in schema file {self.schema_path}: {e}") from e

        root = root_tree.getroot()
        if not _is_xs(root, "schema"):
            raise SchemaLoadError(f"Root element of {self.schema_path} must be xs:schema, found '{root.tag}'")

        target_namespace = root.get("targetNamespace", "")
        first = _Document(root_path, root, target_namespace, root.get("elementFormDefault", "unqualified"))

        documents = [first]
        processed: Set[str] = {root_path}
        self._collect(first, processed, documents)

        namespaces: Dict[str, str] = {}
        for doc in documents:
            for prefix, uri in doc.root.nsmap.items():
                if prefix:
                    namespaces[prefix] = uri

        default_prefix = None
        if target_namespace:
            default_prefix = next((p for p, uri in namespaces.items() if uri == target_namespace), None)
            if default_prefix is None:
                default_prefix = "tns"
                while default_prefix in namespaces:
                    default_prefix += "_"
                namespaces[default_prefix] = target_namespace

        elements: Dict[str, ElementDecl] = {}
        types: Dict[str, TypeDecl] = {}
        indexed: List[_Document] = []
        for doc in documents:
            doc_elements: Dict[str, ElementDecl] = {}
            doc_types: Dict[str, TypeDecl] = {}
            try:
                self._index(doc, doc_elements, doc_types)
            except ValueError as e:
                if doc is first:
                    raise SchemaLoadError(f"Invalid declaration in schema file {self.schema_path}: {e}") from e
                logger.warning(f"Skipping schema {doc.path}: {e}")
                continue
            elements.update(doc_elements)
            types.update(doc_types)
            indexed.append(doc)

        logger.info(
            f"Loaded {len(indexed)} schema document(s): "
            f"{len(elements)} global element(s), {len(types)} global type(s)"
        )
        return SchemaCatalog(
            schema_path=root_path,
            target_namespace=target_namespace,
            default_prefix=default_prefix,
            namespaces=MappingProxyType(namespaces),
            elements=MappingProxyType(elements),
            types=MappingProxyType(types),
            documents=tuple(doc.path for doc in indexed),
        )

    def _collect(self, doc: _Document, processed: Set[str], documents: List[_Document]):
        """Depth-first walk over include then import targets."""
        base_dir = os.path.dirname(doc.path)
        for kind in ("include", "import"):
            for directive in _xs_children(doc.root, kind):
                location = directive.get("schemaLocation")
                if not location:
                    continue
                full_path = os.path.abspath(os.path.join(base_dir, location))
                if full_path in processed:
                    continue
                processed.add(full_path)

                try:
                    tree = etree.parse(full_path, self._parser)
                except (etree.XMLSyntaxError, OSError) as e:
                    logger.warning(f"Could not process {kind}d schema {full_path} (line {directive.sourceline}): {e}")
                    continue

                root = tree.getroot()
                if not _is_xs(root, "schema"):
                    logger.warning(f"Skipping {kind}d document {full_path}: root is not xs:schema")
                    continue

                target_namespace = root.get("targetNamespace")
                if target_namespace is None and kind == "include":
                    # chameleon include
                    target_namespace = doc.target_namespace
                child = _Document(
                    full_path,
                    root,
                    target_namespace or "",
                    root.get("elementFormDefault", "unqualified"),
                )
                documents.append(child)
                logger.debug(f"Loaded {kind}d schema {full_path}")
                self._collect(child, processed, documents)

    def _index(self, doc: _Document, elements: Dict[str, ElementDecl], types: Dict[str, TypeDecl]):
        for node in doc.root:
            if not isinstance(node.tag, str):
                continue
            name = node.get("name")
            if not name:
                continue
            if _is_xs(node, "element"):
                elements[name] = self._element(node, doc, is_global=True)
            elif _is_xs(node, "complexType"):
                types[name] = self._complex_type(node, doc)
            elif _is_xs(node, "simpleType"):
                types[name] = self._simple_type(node)

    def _element(self, node, doc: _Document, is_global: bool = False) -> ElementDecl:
        inline_complex = _first_xs_child(node, "complexType")
        inline_simple = _first_xs_child(node, "simpleType")
        ref = node.get("ref")

        if is_global or ref:
            qualified = True
        else:
            form = node.get("form", doc.element_form_default)
            qualified = form == "qualified"

        return ElementDecl(
            name=node.get("name"),
            ref=ref,
            type_name=node.get("type"),
            complex_type=self._complex_type(inline_complex, doc) if inline_complex is not None else None,
            simple_type=self._simple_type(inline_simple) if inline_simple is not None else None,
            min_occurs=parse_occurs(node.get("minOccurs")),
            max_occurs=parse_occurs(node.get("maxOccurs")),
            namespace=doc.target_namespace or None,
            qualified=qualified,
            fixed=node.get("fixed"),
            default=node.get("default"),
            line=node.sourceline,
        )

    def _complex_type(self, node, doc: _Document) -> ComplexTypeDecl:
        content_holder = node
        base = None
        derivation = None
        simple_content = None
        attribute_holders = [node]

        complex_content = _first_xs_child(node, "complexContent")
        simple = _first_xs_child(node, "simpleContent")
        if complex_content is not None:
            derived = _xs_children(complex_content, "extension", "restriction")
            if derived:
                content_holder = derived[0]
                base = derived[0].get("base")
                derivation = etree.QName(derived[0]).localname
                attribute_holders.append(derived[0])
        elif simple is not None:
            derived = _xs_children(simple, "extension", "restriction")
            if derived:
                base = derived[0].get("base")
                derivation = etree.QName(derived[0]).localname
                simple_content = self._restriction(derived[0])
                attribute_holders.append(derived[0])

        attributes = []
        for holder in attribute_holders:
            for attribute in _xs_children(holder, "attribute"):
                attributes.append(self._attribute(attribute))

        return ComplexTypeDecl(
            name=node.get("name"),
            content=self._model_group(content_holder, doc),
            attributes=tuple(attributes),
            base=base,
            derivation=derivation,
            simple_content=simple_content,
            line=node.sourceline,
        )

    def _model_group(self, holder, doc: _Document) -> Optional[ModelGroup]:
        for compositor in COMPOSITORS:
            group = _first_xs_child(holder, compositor.value)
            if group is not None:
                return self._group(group, compositor, doc)
        return None

    def _group(self, node, compositor: Compositor, doc: _Document) -> ModelGroup:
        particles: List[Union[ElementDecl, ModelGroup]] = []
        for child in node:
            if not isinstance(child.tag, str):
                continue
            if _is_xs(child, "element"):
                if child.get("name") or child.get("ref"):
                    particles.append(self._element(child, doc))
            elif child.tag in {f"{XS}{c.value}" for c in COMPOSITORS}:
                particles.append(self._group(child, Compositor(etree.QName(child).localname), doc))
            elif _is_xs(child, "any") or _is_xs(child, "group"):
                logger.debug(f"Ignoring unsupported xs:{etree.QName(child).localname} at line {child.sourceline}")
        return ModelGroup(
            compositor=compositor,
            particles=tuple(particles),
            min_occurs=parse_occurs(node.get("minOccurs")),
            max_occurs=parse_occurs(node.get("maxOccurs")),
        )

    def _attribute(self, node) -> AttributeDecl:
        inline_simple = _first_xs_child(node, "simpleType")
        return AttributeDecl(
            name=node.get("name"),
            type_name=node.get("type"),
            simple_type=self._simple_type(inline_simple) if inline_simple is not None else None,
            use=node.get("use", "optional"),
            fixed=node.get("fixed"),
            default=node.get("default"),
            line=node.sourceline,
        )

    def _simple_type(self, node) -> SimpleTypeDecl:
        restriction = _first_xs_child(node, "restriction")
        return SimpleTypeDecl(
            name=node.get("name"),
            restriction=self._restriction(restriction) if restriction is not None else None,
            line=node.sourceline,
        )

    def _restriction(self, node) -> Restriction:
        """Collect facets; an inline simpleType under the restriction supplies the base."""
        def facet(name):
            child = _first_xs_child(node, name)
            return child.get("value") if child is not None else None

        base = node.get("base")
        inline_base = _first_xs_child(node, "simpleType")
        if base is None and inline_base is not None:
            inline_restriction = _first_xs_child(inline_base, "restriction")
            if inline_restriction is not None:
                base = inline_restriction.get("base")

        return Restriction(
            base=base,
            enumeration=tuple(e.get("value", "") for e in _xs_children(node, "enumeration")),
            pattern=facet("pattern"),
            length=_int_or_none(facet("length")),
            min_length=_int_or_none(facet("minLength")),
            max_length=_int_or_none(facet("maxLength")),
            min_inclusive=facet("minInclusive"),
            max_inclusive=facet("maxInclusive"),
            min_exclusive=facet("minExclusive"),
            max_exclusive=facet("maxExclusive"),
        )


def build_catalog(schema_path: str) -> SchemaCatalog:
    """
    Build the immutable catalog for a root schema file.

    Args:
        schema_path: Path to the root XSD file

    Returns:
        SchemaCatalog indexing every global element and type

    Raises:
        SchemaLoadError: If the root file is missing, malformed or not an XSD
    """
    return SchemaCatalogBuilder(schema_path).build()
