from __future__ import annotations
from typing import Sequence


class KeyConstructionError(ValueError):
    """A key component is missing; the run must stop rather than drop persons."""


class SchemaConflictError(ValueError):
    """The same column has incompatible types across quarterly partitions."""


class DuplicateKeyWarning(UserWarning):
    def __init__(
        self,
        module: str,
        key: str,
        n_keys: int,
        sample: Sequence[str] = (),
        n_fanout: int = 0,
    ):
        self.module = module
        self.key = key
        self.n_keys = int(n_keys)
        self.n_fanout = int(n_fanout)
        self.sample = list(sample)
        super().__init__(
            f"{module}: {self.n_keys} duplicate {key} value(s) in module table, "
            f"{self.n_fanout} matched by base rows and fanned out "
            f"(e.g. {', '.join(self.sample)})"
        )


class MissingWeightWarning(UserWarning):
    def __init__(self, n_rows: int):
        self.n_rows = int(n_rows)
        super().__init__(
            f"{self.n_rows} working-age row(s) excluded from validation: "
            "quarter not in 1-4 or quarter weight missing"
        )


class ValidationMismatch(UserWarning):
    def __init__(self, statistic: str, calculated: float, published: float, tolerance: float):
        self.statistic = statistic
        self.calculated = calculated
        self.published = published
        self.tolerance = tolerance
        super().__init__(
            f"{statistic}: calculated {calculated:.2f} vs published {published} "
            f"(tolerance {tolerance})"
        )
