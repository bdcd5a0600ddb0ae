import base64
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, Iterable, List, Optional, Set

from faker import Faker

from .model import AttributeDecl, ComplexTypeDecl, ElementDecl, Restriction, SimpleTypeDecl, local_name
from .resolver import Leaf, Resolver

logger = logging.getLogger(__name__)

_LETTER_CLASS = r"\[(?:a-z|A-Z|a-zA-Z|A-Za-z)\]"
_DIGIT_CLASS = r"\[0-9\]|\\d"
_QUANTIFIER = r"(?:[+*?]|\{\d+(?:,\d*)?\})?"

ALL_LETTERS = re.compile(rf"\^?(?:(?:{_LETTER_CLASS}){_QUANTIFIER})+\$?")
ALL_DIGITS = re.compile(rf"\^?(?:(?:{_DIGIT_CLASS}){_QUANTIFIER})+\$?")
DIGIT_TOKEN = re.compile(rf"{_DIGIT_CLASS}|0-9")
LETTER_TOKEN = re.compile(r"a-z|A-Z|\\w|\\p\{L")

_ATOM = re.compile(r"(\[[^\]]*\]|\\[a-zA-Z]|\\.|[^\\\[\](){}|*+?.^$])(\{(\d+)(?:,(\d*))?\}|[+*?])?")

# Integer family: checked after the exact names below.
SUFFIX_VALUES = (
    ("string", "abc"),
    ("gYear", "2025"),
    ("date", "2025-01-01"),
    ("boolean", "true"),
    ("integer", "1"),
    ("long", "1"),
    ("int", "1"),
    ("short", "1"),
    ("byte", "1"),
    ("decimal", "1.23"),
    ("float", "1.23"),
    ("double", "1.23"),
)

FIXED_VALUES = {
    "negativeInteger": "-1",
    "nonPositiveInteger": "-1",
    "duration": "P1D",
    "gYearMonth": "2025-01",
    "gMonthDay": "--01-01",
    "gMonth": "--01",
    "gDay": "---01",
    "normalizedString": "abc",
    "token": "abc",
    "Name": "abc",
    "NCName": "abc",
    "ID": "abc",
    "IDREF": "abc",
    "IDREFS": "abc",
    "ENTITY": "abc",
    "ENTITIES": "abc",
    "NMTOKEN": "abc",
    "NMTOKENS": "abc",
    "QName": "abc",
    "anySimpleType": "abc",
}


def first_non_blank(values: Iterable[str]) -> Optional[str]:
    for value in values:
        if value is not None and value.strip():
            return value
    return None


class ValueResolver:
    """Chooses the text emitted for a leaf element or an attribute."""

    def __init__(self, resolver: Resolver, locale: str = "en_US"):
        self.resolver = resolver
        self.fake = Faker(locale)
        self._faker_values: Dict[str, Callable[[], str]] = {
            "dateTime": lambda: self.fake.date_time().strftime("%Y-%m-%dT%H:%M:%S"),
            "time": lambda: self.fake.time(),
            "anyURI": lambda: self.fake.uri(),
            "language": lambda: self.fake.language_code(),
            "hexBinary": lambda: self.fake.hexify("^^^^^^^^", upper=True),
            "base64Binary": lambda: base64.b64encode(self.fake.binary(length=6)).decode("ascii"),
        }

    def element_value(self, decl: Optional[ElementDecl]) -> str:
        if not isinstance(decl, ElementDecl):
            return ""
        effective = self.resolver.effective(decl)
        if effective is None:
            return ""
        return self._leaf_value(effective)

    def attribute_value(self, decl: Leaf) -> str:
        # only xs:attribute declarations are eligible
        if not isinstance(decl, AttributeDecl):
            return ""
        return self._leaf_value(decl)

    def value_for_type(self, type_name: Optional[str]) -> str:
        return self._type_value(type_name or "string", set())

    def _leaf_value(self, decl: Leaf) -> str:
        if decl.fixed is not None:
            return decl.fixed

        restrictions = self.resolver.restrictions_of(decl)
        for restriction in restrictions:
            enumerated = first_non_blank(restriction.enumeration)
            if enumerated is not None:
                return enumerated

        seen: Set[str] = set()
        if decl.type_name:
            seen.add(local_name(decl.type_name))
        if restrictions:
            return self._restriction_value(restrictions[0], seen)
        return self._type_value(decl.type_name or "string", seen)

    def _restriction_value(self, restriction: Restriction, seen: Set[str]) -> str:
        value = self._facet_value(restriction)
        if value is not None:
            return value
        return self._type_value(restriction.base or "string", seen)

    def _facet_value(self, restriction: Restriction) -> Optional[str]:
        if restriction.pattern:
            return self.pattern_value(restriction.pattern)
        if restriction.length is not None:
            return "a" * restriction.length
        if restriction.min_length is not None:
            return "a" * restriction.min_length
        if restriction.max_length is not None:
            return "b" * restriction.max_length
        if restriction.min_inclusive is not None:
            return restriction.min_inclusive
        if restriction.max_inclusive is not None:
            return restriction.max_inclusive
        if restriction.min_exclusive is not None:
            return _step(restriction.min_exclusive, 1)
        if restriction.max_exclusive is not None:
            return _step(restriction.max_exclusive, -1)
        return None

    def _type_value(self, type_name: str, seen: Set[str]) -> str:
        name = local_name(type_name)
        resolved = self.resolver.resolve_type(name)
        if resolved is not None and name not in seen:
            seen.add(name)
            restriction = None
            if isinstance(resolved, SimpleTypeDecl):
                restriction = resolved.restriction
            elif isinstance(resolved, ComplexTypeDecl):
                restriction = resolved.simple_content
            if restriction is not None:
                enumerated = first_non_blank(restriction.enumeration)
                if enumerated is not None:
                    return enumerated
                return self._restriction_value(restriction, seen)
        return self.builtin_value(name)

    def builtin_value(self, name: str) -> str:
        """Placeholder for an XSD built-in, matched on the type's local name."""
        if name in self._faker_values:
            # seeded by type so repeated runs produce the same documents
            self.fake.seed_instance(name)
            return self._faker_values[name]()
        if name in FIXED_VALUES:
            return FIXED_VALUES[name]
        lowered = name.lower()
        for suffix, value in SUFFIX_VALUES:
            if lowered.endswith(suffix.lower()):
                return value
        logger.debug(f"No built-in mapping for type '{name}'")
        return f"{name}Value"

    def pattern_value(self, pattern: str) -> str:
        if ALL_LETTERS.fullmatch(pattern):
            candidate = "abc"
        elif ALL_DIGITS.fullmatch(pattern):
            candidate = "123"
        elif DIGIT_TOKEN.search(pattern):
            candidate = "123"
        elif LETTER_TOKEN.search(pattern):
            candidate = "abc"
        else:
            candidate = re.sub(r"[^A-Za-z0-9]", "", pattern) or "abc"
        return _fit_pattern(pattern, candidate)


def _step(literal: str, delta: int) -> Optional[str]:
    try:
        return str(Decimal(literal) + delta)
    except InvalidOperation:
        return None


def _matches(compiled, value: str) -> bool:
    return compiled.fullmatch(value) is not None


def _fit_pattern(pattern: str, candidate: str) -> str:
    """Keep ``candidate`` unless a simple variant of it is the only thing that matches."""
    try:
        compiled = re.compile(pattern)
    except re.error:
        return candidate

    variants: List[str] = [candidate, candidate.upper()]
    lengths = re.search(r"\{(\d+)", pattern)
    if lengths:
        size = int(lengths.group(1))
        variants.extend((v * size)[:size] for v in (candidate, candidate.upper()) if v)
    built = _build_from_atoms(pattern)
    if built is not None:
        variants.append(built)

    for variant in variants:
        if _matches(compiled, variant):
            return variant
    logger.debug(f"Pattern '{pattern}' not satisfied by '{candidate}'")
    return candidate


def _build_from_atoms(pattern: str) -> Optional[str]:
    """Concatenate one representative character per atom, honouring minimum counts."""
    body = pattern
    if body.startswith("^"):
        body = body[1:]
    if body.endswith("$") and not body.endswith("\\$"):
        body = body[:-1]

    pieces = []
    position = 0
    while position < len(body):
        match = _ATOM.match(body, position)
        if match is None:
            return None
        atom, quantifier, low = match.group(1), match.group(2), match.group(3)
        char = _representative(atom)
        if char is None:
            return None
        if quantifier is None or quantifier == "+":
            count = 1
        elif quantifier in ("*", "?"):
            count = 0
        else:
            count = int(low)
        pieces.append(char * count)
        position = match.end()
    return "".join(pieces)


def _representative(atom: str) -> Optional[str]:
    if atom.startswith("["):
        inner = atom[1:-1]
        if inner.startswith("^"):
            return None
        for marker, char in (("a-z", "a"), ("A-Z", "A"), ("0-9", "1"), ("\\d", "1")):
            if marker in inner:
                return char
        return inner[0] if inner else None
    if atom in ("\\d",):
        return "1"
    if atom in ("\\w", "\\c", "\\i"):
        return "a"
    if atom.startswith("\\"):
        escaped = atom[1:]
        return escaped if not escaped.isalpha() else None
    return atom
