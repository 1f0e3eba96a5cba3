from __future__ import annotations

from typing import Iterable, List


class PivotError(Exception):
    """Base class for pivot engine errors."""


class PivotInputError(PivotError, TypeError):
    """The row set handed to the pipeline is not a list of mappings."""


class FormulaError(PivotError, ValueError):
    """A calculated measure formula cannot be parsed or evaluated."""


class ConfigValidationError(PivotError, ValueError):
    def __init__(self, issues: Iterable[str]):
        self.issues: List[str] = list(issues)
        super().__init__("; ".join(self.issues) or "invalid pivot configuration")
