import itertools
import logging
import re
import threading
import time
from typing import Collection, Iterator, List, Optional, Set

from .catalog import SchemaCatalog
from .constraints import ConstraintExtractor
from .model import ChildRef, ElementDecl, TestKind, TestPoint, is_bounded
from .resolver import Resolver
from .synthesizer import minimal_count

logger = logging.getLogger(__name__)


def sanitize(value: str) -> str:
    """Make a literal safe for use in a file name."""
    return re.sub(r"[^a-zA-Z0-9]", "_", value)


def _unique(name: str, issued: Set[str]) -> str:
    """Suffix ``_2``, ``_3``... until name differs from every name in issued."""
    candidate = name
    counter = itertools.count(2)
    while candidate in issued:
        candidate = f"{name}_{next(counter)}"
    issued.add(candidate)
    return candidate


class SentinelFactory:
    """Produces values guaranteed to be outside a given enumeration."""

    def __init__(self, marker: str = "INVALID_"):
        self.marker = marker
        self._counter = itertools.count()
        self._lock = threading.Lock()

    def __call__(self, excluded: Collection[str] = ()) -> str:
        while True:
            with self._lock:
                token = f"{time.time_ns()}{next(self._counter)}"
            value = f"{self.marker}{token}"
            if value not in excluded:
                return value


class CardinalityOrchestrator:
    """Boundary occurrence counts for every direct child of a global element."""

    def __init__(self, catalog: SchemaCatalog, extractor: ConstraintExtractor):
        self.catalog = catalog
        self.extractor = extractor

    def test_points(self, element_name: str) -> Iterator[TestPoint]:
        decl = self.catalog.elements.get(element_name)
        for child in self.extractor.extract_children(decl):
            yield from self.child_test_points(element_name, child)

    def child_test_points(self, element_name: str, child: ChildRef) -> Iterator[TestPoint]:
        base = f"{element_name}_{child.local_name}"
        low, high = child.min_occurs, child.max_occurs

        def point(case: str, count: int, valid: bool) -> TestPoint:
            return TestPoint(
                kind=TestKind.CARDINALITY,
                root=element_name,
                name=f"{base}_{case}",
                expected_valid=valid,
                target_path=(child.local_name,),
                occurrences=count,
                line=child.declaration.line,
            )

        if low > 0:
            yield point("min", low, True)
        if is_bounded(high):
            yield point("max", high, True)
            if high - low > 1:
                yield point("between", low + (high - low) // 2, True)
        if low > 0:
            yield point("lessThanMin", low - 1, False)
        if is_bounded(high):
            yield point("moreThanMax", high + 1, False)


class EnumerationOrchestrator:
    """One document per legal value plus one sentinel document, for every enumerated leaf."""

    def __init__(
        self,
        catalog: SchemaCatalog,
        resolver: Resolver,
        extractor: ConstraintExtractor,
        sentinel: Optional[SentinelFactory] = None,
    ):
        self.catalog = catalog
        self.resolver = resolver
        self.extractor = extractor
        self.sentinel = sentinel or SentinelFactory()

    def test_points(self, element_name: str, visited: Optional[Set[str]] = None) -> Iterator[TestPoint]:
        """
        Enumeration cases for a global element and, transitively, the global
        elements among its children.

        Args:
            element_name: Name of a global element
            visited: Names already processed in this sweep; updated in place
        """
        visited = set() if visited is None else visited
        if element_name in visited:
            return
        visited.add(element_name)

        decl = self.catalog.elements.get(element_name)
        if decl is None:
            return

        yield from self._values(element_name, f"{element_name}_enum", (), 1, None, decl)
        for attribute in self._attributes(decl):
            yield from self._values(
                element_name, f"{element_name}_{attribute.name}_enum", (), 1, attribute.name, attribute)

        for child in self.extractor.extract_children(decl):
            effective = self.resolver.effective(child.declaration)
            if effective is None:
                continue
            path = (child.local_name,)
            count = minimal_count(child.declaration)
            if count == 0:
                continue
            yield from self._values(
                element_name, f"{element_name}_{child.local_name}_enum", path, count, None, effective)
            for attribute in self._attributes(effective):
                yield from self._values(
                    element_name,
                    f"{element_name}_{child.local_name}_{attribute.name}_enum",
                    path,
                    count,
                    attribute.name,
                    attribute,
                )

            if child.local_name in self.catalog.elements:
                yield from self.test_points(child.local_name, visited)

    def _attributes(self, decl: ElementDecl):
        complex_type = self.resolver.complex_type_of(decl)
        return [
            a for a in self.resolver.attributes_of(complex_type)
            if a.name and a.use != "prohibited" and a.fixed is None
        ]

    def _values(self, root, base, path, count, attribute, leaf) -> Iterator[TestPoint]:
        if isinstance(leaf, ElementDecl) and leaf.fixed is not None:
            return
        values: List[str] = self.resolver.enumerations_of(leaf)
        if not values:
            return

        issued: Set[str] = set()
        for value in values:
            yield TestPoint(
                kind=TestKind.ENUMERATION,
                root=root,
                name=_unique(f"{base}_{sanitize(value)}", issued),
                expected_valid=True,
                target_path=path,
                occurrences=count,
                value=value,
                attribute=attribute,
                line=leaf.line,
            )
        yield TestPoint(
            kind=TestKind.ENUMERATION,
            root=root,
            name=f"{base}_invalid",
            expected_valid=False,
            target_path=path,
            occurrences=count,
            value=self.sentinel(values),
            attribute=attribute,
            line=leaf.line,
        )
