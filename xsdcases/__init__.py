from .catalog import SchemaCatalog, SchemaLoadError, build_catalog
from .config import GeneratorConfig
from .generator import GenerationSummary, TestCaseGenerator, generate_test_cases
from .model import UNBOUNDED, TestKind, TestPoint
from .synthesizer import CircularReferenceError, InstanceSynthesizer
