import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Set, Tuple

from .catalog import SchemaCatalog, build_catalog
from .config import GeneratorConfig
from .constraints import ConstraintExtractor
from .model import TestPoint
from .orchestrators import CardinalityOrchestrator, EnumerationOrchestrator, SentinelFactory
from .output import DirectorySink, OutputSink
from .resolver import Resolver
from .synthesizer import CircularReferenceError, InstanceSynthesizer
from .validation import SchemaValidator, ValidationResult, load_validator
from .values import ValueResolver

logger = logging.getLogger(__name__)


@dataclass
class GenerationSummary:
    positive: int = 0
    negative: int = 0
    written: List[str] = field(default_factory=list)
    failures: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.positive + self.negative


class TestCaseGenerator:
    """Generates positive and negative XML documents for every global element of a schema."""
    __test__ = False

    def __init__(
        self,
        schema_path: str,
        config: Optional[GeneratorConfig] = None,
        sink: Optional[OutputSink] = None,
    ):
        self.config = config or GeneratorConfig()
        self.catalog: SchemaCatalog = build_catalog(schema_path)
        self.sink = sink or DirectorySink(self.config.output_dir)

        self.resolver = Resolver(self.catalog)
        self.extractor = ConstraintExtractor(self.resolver)
        self.values = ValueResolver(self.resolver, self.config.faker_locale)
        self.synthesizer = InstanceSynthesizer(self.catalog, self.resolver, self.extractor, self.values)
        self.cardinality = CardinalityOrchestrator(self.catalog, self.extractor)
        self.enumeration = EnumerationOrchestrator(
            self.catalog, self.resolver, self.extractor, SentinelFactory(self.config.sentinel_marker))

    def test_points(self) -> Iterator[TestPoint]:
        """Every case of the sweep, in catalog order."""
        visited: Set[str] = set()
        for element_name in self.catalog.elements:
            yield from self.cardinality.test_points(element_name)
            yield from self.enumeration.test_points(element_name, visited)

    def run(self) -> GenerationSummary:
        summary = GenerationSummary()
        validator = load_validator(self.catalog.schema_path) if self.config.validate else None

        pending: List[Tuple[TestPoint, Future]] = []
        with ThreadPoolExecutor(max_workers=self.config.worker_count) as executor:
            for point in self.test_points():
                try:
                    xml = self.synthesizer.synthesize(
                        point.root, point.target_path, point.occurrences, point.value, point.attribute)
                except CircularReferenceError as e:
                    logger.warning(f"Skipping {point.name}: {e}")
                    summary.failures.append(point.relative_path)
                    continue

                pending.append((point, executor.submit(self._emit, point, xml.encode("utf-8"), validator)))

            for point, future in pending:
                try:
                    path, result = future.result()
                except OSError as e:
                    logger.error(f"Failed to write {point.relative_path}: {e}")
                    summary.failures.append(point.relative_path)
                    continue
                summary.written.append(path)
                if point.expected_valid:
                    summary.positive += 1
                else:
                    summary.negative += 1
                if result is not None and result.is_valid != point.expected_valid:
                    summary.warnings.append(self._mismatch(point, path, result))

        for warning in summary.warnings:
            logger.warning(warning)
        logger.info(
            f"Generated {summary.positive} positive and {summary.negative} negative test cases "
            f"for {self.catalog.schema_path}"
        )
        return summary

    def _emit(
        self, point: TestPoint, content: bytes, validator: Optional[SchemaValidator]
    ) -> Tuple[str, Optional[ValidationResult]]:
        path = self.sink.write(point.relative_path, content)
        result = validator.validate_string(content, label=path) if validator else None
        return path, result

    def _mismatch(self, point: TestPoint, path: str, result: ValidationResult) -> str:
        location = f" (schema line {point.line})" if point.line else ""
        if point.expected_valid:
            return f"Positive test {path}{location} failed validation: {result.error_message}"
        return f"Negative test {path}{location} passed validation"


def generate_test_cases(
    schema_path: str,
    output_dir: str = "test-output",
    validate: bool = True,
) -> GenerationSummary:
    """
    Generate positive and negative XML test cases for an XSD schema.

    Args:
        schema_path: Path to the XSD schema file
        output_dir: Directory that receives the positive/ and negative/ trees
        validate: Check every document against the schema after writing it

    Returns:
        Counts, written paths and validation warnings of the sweep

    Raises:
        SchemaLoadError: If the schema file is missing or malformed
    """
    config = GeneratorConfig(output_dir=output_dir, validate=validate)
    return TestCaseGenerator(schema_path, config).run()
