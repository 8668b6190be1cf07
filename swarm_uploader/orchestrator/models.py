"""Orchestrator data models."""
from dataclasses import dataclass, field
from typing import List

from ..models import ItemOutcome


@dataclass
class BatchUploadResult:
    """Per-item outcomes of one run, in resolution order."""
    outcomes: List[ItemOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def successes(self) -> List[ItemOutcome]:
        return [o for o in self.outcomes if o.success]

    @property
    def failures(self) -> List[ItemOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def uploaded(self) -> int:
        return len(self.successes)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def all_success(self) -> bool:
        return self.failed == 0
