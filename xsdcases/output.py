import logging
import os
import threading
from typing import Dict

logger = logging.getLogger(__name__)


class OutputSink:
    """Capability to persist one generated document."""

    def write(self, relative_path: str, content: bytes) -> str:
        """Store content under relative_path and return where it went."""
        raise NotImplementedError


class DirectorySink(OutputSink):
    """Writes documents below a root directory, creating folders as needed."""

    def __init__(self, root: str = "test-output"):
        self.root = root

    def write(self, relative_path: str, content: bytes) -> str:
        path = os.path.join(self.root, *relative_path.split("/"))
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(content)
        logger.debug(f"Created test file: {path}")
        return path


class MemorySink(OutputSink):
    """Keeps documents in a dict keyed by relative path."""

    def __init__(self):
        self.files: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def write(self, relative_path: str, content: bytes) -> str:
        with self._lock:
            self.files[relative_path] = content
        return relative_path

    def text(self, relative_path: str) -> str:
        return self.files[relative_path].decode("utf-8")
