import logging
import threading
from dataclasses import dataclass
from typing import Optional, Union

from lxml import etree

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    xml_file: str
    is_valid: bool
    error_message: Optional[str] = None


class SchemaValidator:
    """Advisory XSD validation backed by lxml; one compiled schema per thread."""

    def __init__(self, xsd_path: str):
        self.xsd_path = xsd_path
        self._local = threading.local()
        # Fail early, in the calling thread, if lxml cannot compile the schema.
        self._schema()

    def _schema(self) -> etree.XMLSchema:
        schema = getattr(self._local, "schema", None)
        if schema is None:
            schema = etree.XMLSchema(etree.parse(self.xsd_path))
            self._local.schema = schema
        return schema

    def validate(self, xml_path: str) -> ValidationResult:
        try:
            document = etree.parse(xml_path)
        except (etree.XMLSyntaxError, OSError) as e:
            return ValidationResult(xml_path, False, f"XML syntax error: {e}")
        return self._check(xml_path, document)

    def validate_string(self, xml: Union[str, bytes], label: str = "<string>") -> ValidationResult:
        if isinstance(xml, str):
            xml = xml.encode("utf-8")
        try:
            document = etree.fromstring(xml).getroottree()
        except etree.XMLSyntaxError as e:
            return ValidationResult(label, False, f"XML syntax error: {e}")
        return self._check(label, document)

    def _check(self, label: str, document) -> ValidationResult:
        schema = self._schema()
        if schema.validate(document):
            return ValidationResult(label, True)
        errors = "; ".join(f"line {error.line}: {error.message}" for error in schema.error_log)
        return ValidationResult(label, False, errors)


def load_validator(xsd_path: str) -> Optional[SchemaValidator]:
    """Validator for xsd_path, or None when lxml rejects the schema."""
    try:
        return SchemaValidator(xsd_path)
    except (etree.XMLSchemaParseError, etree.XMLSyntaxError, OSError) as e:
        logger.warning(f"Validation disabled, schema could not be compiled: {e}")
        return None
