"""Typed schema AST shared by every component.

The catalog builder turns lxml nodes into these values once; nothing
downstream touches the DOM again.
"""
from dataclasses import dataclass, field
from enum import Enum
from functools import total_ordering
from typing import Optional, Tuple, Union


@total_ordering
class _Unbounded:
    """Sentinel for ``maxOccurs="unbounded"``; greater than every int."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __eq__(self, other):
        return other is self

    def __lt__(self, other):
        return False

    def __hash__(self):
        return hash("unbounded")

    def __repr__(self):
        return "UNBOUNDED"

    def __str__(self):
        return "unbounded"


UNBOUNDED = _Unbounded()

Occurs = Union[int, _Unbounded]


def is_bounded(occurs: Occurs) -> bool:
    return occurs is not UNBOUNDED


def parse_occurs(raw: Optional[str], default: int = 1) -> Occurs:
    """Convert a ``minOccurs``/``maxOccurs`` attribute value."""
    if raw is None or raw.strip() == "":
        return default
    raw = raw.strip()
    if raw == "unbounded":
        return UNBOUNDED
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"Invalid occurrence value '{raw}'") from e


class Compositor(str, Enum):
    SEQUENCE = "sequence"
    CHOICE = "choice"
    ALL = "all"


@dataclass(frozen=True)
class Restriction:
    """Facets of an ``xs:restriction``."""
    base: Optional[str] = None
    enumeration: Tuple[str, ...] = ()
    pattern: Optional[str] = None
    length: Optional[int] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    min_inclusive: Optional[str] = None
    max_inclusive: Optional[str] = None
    min_exclusive: Optional[str] = None
    max_exclusive: Optional[str] = None


@dataclass(frozen=True)
class SimpleTypeDecl:
    name: Optional[str] = None
    # None for xs:list / xs:union, which are not modelled
    restriction: Optional[Restriction] = None
    line: Optional[int] = None


@dataclass(frozen=True)
class AttributeDecl:
    name: Optional[str]
    type_name: Optional[str] = None
    simple_type: Optional[SimpleTypeDecl] = None
    use: str = "optional"
    fixed: Optional[str] = None
    default: Optional[str] = None
    line: Optional[int] = None


@dataclass(frozen=True)
class ModelGroup:
    compositor: Compositor
    particles: Tuple[Union["ElementDecl", "ModelGroup"], ...] = ()
    min_occurs: int = 1
    max_occurs: Occurs = 1


@dataclass(frozen=True)
class ComplexTypeDecl:
    name: Optional[str] = None
    content: Optional[ModelGroup] = None
    attributes: Tuple[AttributeDecl, ...] = ()
    base: Optional[str] = None
    derivation: Optional[str] = None
    simple_content: Optional[Restriction] = None
    line: Optional[int] = None


TypeDecl = Union[SimpleTypeDecl, ComplexTypeDecl]


@dataclass(frozen=True)
class ElementDecl:
    name: Optional[str]
    ref: Optional[str] = None
    type_name: Optional[str] = None
    complex_type: Optional[ComplexTypeDecl] = None
    simple_type: Optional[SimpleTypeDecl] = None
    min_occurs: int = 1
    max_occurs: Occurs = 1
    namespace: Optional[str] = None
    qualified: bool = True
    fixed: Optional[str] = None
    default: Optional[str] = None
    line: Optional[int] = None

    @property
    def is_reference(self) -> bool:
        return bool(self.ref)

    @property
    def display_name(self) -> str:
        return local_name(self.name or self.ref or "")


@dataclass(frozen=True)
class ChildRef:
    """One child particle of a complex type, as seen by the orchestrators."""
    name: str
    is_reference: bool
    min_occurs: int
    max_occurs: Occurs
    is_simple_type: bool
    declaration: ElementDecl = field(repr=False, compare=False)
    compositor: Compositor = Compositor.SEQUENCE

    @property
    def local_name(self) -> str:
        return local_name(self.name)


class TestKind(str, Enum):
    __test__ = False

    CARDINALITY = "cardinality"
    ENUMERATION = "enumeration"


@dataclass(frozen=True)
class TestPoint:
    """A single generated case: which node, what count or value, expected outcome."""
    __test__ = False

    kind: TestKind
    root: str
    name: str
    expected_valid: bool
    target_path: Tuple[str, ...] = ()
    occurrences: int = 1
    value: Optional[str] = None
    attribute: Optional[str] = None
    line: Optional[int] = None

    @property
    def category(self) -> str:
        polarity = "positive" if self.expected_valid else "negative"
        return f"{polarity}/{self.kind.value}"

    @property
    def relative_path(self) -> str:
        return f"{self.category}/{self.name}.xml"


def local_name(qname: Optional[str]) -> str:
    """Strip a ``prefix:`` or ``{uri}`` qualifier."""
    if not qname:
        return ""
    if qname.startswith("{"):
        qname = qname.split("}", 1)[1]
    return qname.rsplit(":", 1)[-1]
