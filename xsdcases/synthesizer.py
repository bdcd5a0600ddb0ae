import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from lxml import etree

from .catalog import SchemaCatalog
from .constraints import ConstraintExtractor
from .model import Compositor, ElementDecl, ModelGroup, is_bounded, local_name
from .resolver import Resolver
from .values import ValueResolver

logger = logging.getLogger(__name__)


class CircularReferenceError(Exception):
    """Raised when a required element contains itself."""
    pass


@dataclass(frozen=True)
class _Target:
    path: Tuple[str, ...]
    occurrences: int
    value: Optional[str]
    attribute: Optional[str]


def minimal_count(decl: ElementDecl) -> int:
    """At least one instance, unless the schema forbids the element outright."""
    if is_bounded(decl.max_occurs) and decl.max_occurs == 0:
        return 0
    return max(decl.min_occurs, 1)


class InstanceSynthesizer:
    """Recursive-descent generator of minimal documents with one node under test."""

    def __init__(
        self,
        catalog: SchemaCatalog,
        resolver: Optional[Resolver] = None,
        extractor: Optional[ConstraintExtractor] = None,
        values: Optional[ValueResolver] = None,
    ):
        self.catalog = catalog
        self.resolver = resolver or Resolver(catalog)
        self.extractor = extractor or ConstraintExtractor(self.resolver)
        self.values = values or ValueResolver(self.resolver)

    def synthesize(
        self,
        root_name: str,
        target_path: Sequence[str] = (),
        occurrences: int = 1,
        value: Optional[str] = None,
        attribute: Optional[str] = None,
    ) -> str:
        """
        Generate one XML document rooted at a global element.

        Args:
            root_name: Name of a global element
            target_path: Child names leading from the root to the node under test;
                empty to target the root itself
            occurrences: Number of instances emitted for the last step of target_path
            value: Text (or attribute value) to put on the node under test
            attribute: Attribute of the node under test that receives value

        Returns:
            Serialized document with an XML declaration

        Raises:
            ValueError: If root_name is not a global element
            CircularReferenceError: If a required element contains itself
        """
        decl = self.resolver.resolve_element_ref(root_name)
        if decl is None:
            raise ValueError(f"Root element '{root_name}' not found in schema")
        if occurrences < 0:
            raise ValueError(f"Occurrence count must not be negative: {occurrences}")

        target = _Target(tuple(local_name(step) for step in target_path), occurrences, value, attribute)
        root = etree.Element(self._tag(decl, decl.name), nsmap=self._nsmap())
        self._populate(root, decl, target.path, target, [])

        return etree.tostring(root, pretty_print=True, xml_declaration=True, encoding="UTF-8").decode("utf-8")

    def _nsmap(self) -> Dict[str, str]:
        return {prefix: uri for prefix, uri in self.catalog.namespaces.items() if prefix}

    def _tag(self, decl: Optional[ElementDecl], name: str) -> str:
        if decl is None:
            namespace = self.catalog.target_namespace
        else:
            namespace = decl.namespace if decl.qualified else None
        name = local_name(name)
        return f"{{{namespace}}}{name}" if namespace else name

    def _instance(self, parent, decl: ElementDecl, path: Optional[Tuple[str, ...]], target: _Target, stack: List[int]):
        effective = self.resolver.effective(decl)
        if effective is None:
            # unresolved reference: empty leaf
            etree.SubElement(parent, self._tag(None, decl.ref))
            return
        element = etree.SubElement(parent, self._tag(effective, effective.name))
        self._populate(element, effective, path, target, stack)

    def _populate(self, element, decl: ElementDecl, path: Optional[Tuple[str, ...]], target: _Target, stack: List[int]):
        on_target = path == ()
        complex_type = self.resolver.complex_type_of(decl)

        for attribute in self.resolver.attributes_of(complex_type):
            if not attribute.name or attribute.use == "prohibited":
                continue
            element.set(attribute.name, self.values.attribute_value(attribute))
        if on_target and target.attribute:
            element.set(target.attribute, target.value if target.value is not None else "")

        content = self.resolver.content_of(complex_type)
        if content is not None and content.particles:
            stack.append(id(decl))
            try:
                self._repeat(element, content, path, target, stack)
            finally:
                stack.pop()
        elif on_target and target.attribute is None and target.value is not None:
            element.text = target.value
        elif self.extractor.is_simple(decl):
            element.text = self.values.element_value(decl)

    def _group(self, element, group: ModelGroup, path: Optional[Tuple[str, ...]], target: _Target, stack: List[int]):
        particles = group.particles
        if group.compositor is Compositor.CHOICE and particles:
            chosen = next((p for p in particles if self._on_path(p, path)), particles[0])
            particles = (chosen,)

        for particle in particles:
            if isinstance(particle, ModelGroup):
                if particle.min_occurs > 0:
                    self._repeat(element, particle, path, target, stack)
                continue

            name = particle.display_name
            if path and name == path[0]:
                if len(path) == 1:
                    count, rest = target.occurrences, ()
                else:
                    count, rest = minimal_count(particle), path[1:]
            else:
                count, rest = minimal_count(particle), None

            if count and rest is None and self._is_recursive(particle, stack):
                if particle.min_occurs == 0:
                    logger.debug(f"Skipping optional recursive element '{name}'")
                    continue
                raise CircularReferenceError(f"Required element '{name}' contains itself")

            for _ in range(count):
                self._instance(element, particle, rest, target, stack)

    def _repeat(self, element, group: ModelGroup, path: Optional[Tuple[str, ...]], target: _Target, stack: List[int]):
        """Emit group minOccurs times (at least once); only the first pass carries the target."""
        for index in range(max(group.min_occurs, 1)):
            self._group(element, group, path if index == 0 else None, target, stack)

    def _on_path(self, particle, path: Optional[Tuple[str, ...]]) -> bool:
        if not path:
            return False
        if isinstance(particle, ModelGroup):
            return any(self._on_path(p, path) for p in particle.particles)
        return particle.display_name == path[0]

    def _is_recursive(self, particle: ElementDecl, stack: List[int]) -> bool:
        effective = self.resolver.effective(particle)
        return effective is not None and id(effective) in stack
