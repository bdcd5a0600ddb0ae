import logging
from typing import List, Optional, Set, Union

from .catalog import SchemaCatalog
from .model import (
    AttributeDecl,
    ComplexTypeDecl,
    Compositor,
    ElementDecl,
    ModelGroup,
    Restriction,
    SimpleTypeDecl,
    TypeDecl,
    local_name,
)

logger = logging.getLogger(__name__)

Leaf = Union[ElementDecl, AttributeDecl]


def _plain_sequence(group: ModelGroup) -> bool:
    return group.compositor is Compositor.SEQUENCE and group.min_occurs == 1 and group.max_occurs == 1


class Resolver:
    """Single-level, prefix-agnostic lookups into a SchemaCatalog."""

    def __init__(self, catalog: SchemaCatalog):
        self.catalog = catalog

    def resolve_element_ref(self, name: Optional[str]) -> Optional[ElementDecl]:
        if not name:
            return None
        return self.catalog.elements.get(local_name(name))

    def resolve_type(self, name: Optional[str]) -> Optional[TypeDecl]:
        if not name:
            return None
        return self.catalog.types.get(local_name(name))

    def effective(self, decl: ElementDecl) -> Optional[ElementDecl]:
        """Follow ``ref``; None when the reference does not resolve."""
        if not decl.ref:
            return decl
        target = self.resolve_element_ref(decl.ref)
        if target is None:
            logger.debug(f"Unresolved element reference '{decl.ref}' (line {decl.line})")
        return target

    def complex_type_of(self, decl: ElementDecl) -> Optional[ComplexTypeDecl]:
        if decl.type_name:
            resolved = self.resolve_type(decl.type_name)
            return resolved if isinstance(resolved, ComplexTypeDecl) else None
        return decl.complex_type

    def simple_type_of(self, decl: Leaf) -> Optional[SimpleTypeDecl]:
        if decl.type_name:
            resolved = self.resolve_type(decl.type_name)
            return resolved if isinstance(resolved, SimpleTypeDecl) else None
        return decl.simple_type

    def _base_chain(self, complex_type: ComplexTypeDecl) -> List[ComplexTypeDecl]:
        """The type followed by its complexContent/simpleContent ancestors, nearest first."""
        chain = [complex_type]
        seen = {id(complex_type)}
        current = complex_type
        while current.base:
            base = self.resolve_type(current.base)
            if not isinstance(base, ComplexTypeDecl) or id(base) in seen:
                break
            chain.append(base)
            seen.add(id(base))
            current = base
        return chain

    def content_of(self, complex_type: Optional[ComplexTypeDecl]) -> Optional[ModelGroup]:
        """Content model, with an extension's base particles placed before its own."""
        if complex_type is None:
            return None
        if complex_type.derivation != "extension" or not complex_type.base:
            return complex_type.content

        base = self.resolve_type(complex_type.base)
        base_content = self.content_of(base) if isinstance(base, ComplexTypeDecl) and base is not complex_type else None
        own = complex_type.content
        if base_content is None:
            return own
        if own is None:
            return base_content
        if _plain_sequence(base_content) and _plain_sequence(own):
            return ModelGroup(Compositor.SEQUENCE, base_content.particles + own.particles)
        # extension content is sequence(base, own)
        return ModelGroup(Compositor.SEQUENCE, (base_content, own))

    def attributes_of(self, complex_type: Optional[ComplexTypeDecl]) -> List[AttributeDecl]:
        """Declared attributes including inherited ones; nearest declaration wins."""
        if complex_type is None:
            return []
        attributes = {}
        for current in reversed(self._base_chain(complex_type)):
            for attribute in current.attributes:
                if attribute.name:
                    attributes[attribute.name] = attribute
        return list(attributes.values())

    def restrictions_of(self, decl: Leaf) -> List[Restriction]:
        """Restrictions that constrain a leaf's value, inline first then named type."""
        found = []
        if decl.simple_type is not None and decl.simple_type.restriction is not None:
            found.append(decl.simple_type.restriction)
        if decl.type_name:
            resolved = self.resolve_type(decl.type_name)
            if isinstance(resolved, SimpleTypeDecl) and resolved.restriction is not None:
                found.append(resolved.restriction)
            elif isinstance(resolved, ComplexTypeDecl) and resolved.simple_content is not None:
                found.append(resolved.simple_content)
        if isinstance(decl, ElementDecl) and decl.complex_type is not None and decl.complex_type.simple_content:
            found.append(decl.complex_type.simple_content)
        return found

    def enumerations_of(self, decl: Leaf) -> List[str]:
        """Non-blank enumeration values of a leaf, following named simple types through their bases."""
        values: List[str] = []
        for restriction in self.restrictions_of(decl):
            values.extend(self._enumerations(restriction, set()))
        return [v for v in values if v.strip()]

    def _enumerations(self, restriction: Restriction, seen: Set[str]) -> List[str]:
        if restriction.enumeration:
            return list(restriction.enumeration)
        base_name = local_name(restriction.base)
        if not base_name or base_name in seen:
            return []
        seen.add(base_name)
        base = self.resolve_type(base_name)
        if isinstance(base, SimpleTypeDecl) and base.restriction is not None:
            return self._enumerations(base.restriction, seen)
        if isinstance(base, ComplexTypeDecl) and base.simple_content is not None:
            return self._enumerations(base.simple_content, seen)
        return []
