import os
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class GeneratorConfig:
    """Settings for one generation sweep."""
    output_dir: str = "test-output"
    validate: bool = True
    workers: Optional[int] = None
    sentinel_marker: str = "INVALID_"
    faker_locale: str = "en_US"

    def __post_init__(self):
        if self.workers is not None and self.workers < 1:
            raise ValueError(f"workers must be at least 1, got {self.workers}")
        if not self.sentinel_marker:
            raise ValueError("sentinel_marker must not be empty")

    @property
    def worker_count(self) -> int:
        return self.workers or os.cpu_count() or 1
