import logging
from typing import List, Optional

from .model import UNBOUNDED, ChildRef, ComplexTypeDecl, ElementDecl, SimpleTypeDecl, local_name
from .resolver import Resolver

logger = logging.getLogger(__name__)

BUILTIN_SIMPLE_TYPES = frozenset({
    "string", "normalizedString", "token", "language", "Name", "NCName", "ID", "IDREF", "IDREFS",
    "ENTITY", "ENTITIES", "NMTOKEN", "NMTOKENS", "QName", "NOTATION", "anyURI",
    "boolean", "decimal", "float", "double",
    "duration", "dateTime", "time", "date", "gYearMonth", "gYear", "gMonthDay", "gDay", "gMonth",
    "hexBinary", "base64Binary",
    "integer", "nonPositiveInteger", "negativeInteger", "long", "int", "short", "byte",
    "nonNegativeInteger", "unsignedLong", "unsignedInt", "unsignedShort", "unsignedByte",
    "positiveInteger",
    "anySimpleType",
})


def is_builtin_type(type_name: Optional[str]) -> bool:
    return local_name(type_name) in BUILTIN_SIMPLE_TYPES


class ConstraintExtractor:
    """Lists the direct child particles of an element's content model."""

    def __init__(self, resolver: Resolver):
        self.resolver = resolver

    def extract_children(self, decl: Optional[ElementDecl]) -> List[ChildRef]:
        if decl is None:
            return []
        effective = self.resolver.effective(decl)
        if effective is None:
            return []

        content = self.resolver.content_of(self.resolver.complex_type_of(effective))
        if content is None:
            return []

        # bounds of an optional or repeating group override those of its particles
        optional_group = content.min_occurs != 1
        repeating_group = content.max_occurs is UNBOUNDED or content.max_occurs > 1
        children = []
        for particle in content.particles:
            if not isinstance(particle, ElementDecl):
                # nested compositors are not test targets
                continue
            max_occurs = particle.max_occurs
            if repeating_group and max_occurs != 0:
                max_occurs = UNBOUNDED
            children.append(ChildRef(
                name=particle.name or particle.ref,
                is_reference=particle.is_reference,
                min_occurs=0 if optional_group else particle.min_occurs,
                max_occurs=max_occurs,
                is_simple_type=self.is_simple(particle),
                declaration=particle,
                compositor=content.compositor,
            ))
        return children

    def is_simple(self, decl: Optional[ElementDecl]) -> bool:
        """Whether an element carries text rather than child elements."""
        if decl is None:
            return False
        effective = self.resolver.effective(decl)
        if effective is None:
            return False

        if effective.type_name:
            if is_builtin_type(effective.type_name):
                return True
            resolved = self.resolver.resolve_type(effective.type_name)
            if isinstance(resolved, SimpleTypeDecl):
                return True
            if isinstance(resolved, ComplexTypeDecl):
                return resolved.simple_content is not None
            return False

        if effective.simple_type is not None:
            return True
        if effective.complex_type is not None:
            return effective.complex_type.simple_content is not None
        return True

