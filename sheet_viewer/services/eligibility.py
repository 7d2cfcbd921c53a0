from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from sheet_viewer.models.dataset import RowRef
from sheet_viewer.services.errors import ConfigurationError

"""Eligibility check for the batch status edit.

Rule = 列名 -> 必須値 の AND 条件。列は毎回ヘッダ名で解決し、固定インデックスは使わない。
必須列がヘッダに無い場合は行を評価する前に ConfigurationError。
"""

__all__ = [
    "EligibilityRule",
    "EligibilityEvaluator",
]


@dataclass(frozen=True)
class EligibilityRule:
    """Conjunction of ``column == required value`` predicates."""
    requirements: tuple[tuple[str, str], ...]

    @classmethod
    def from_pairs(cls, pairs: Sequence[tuple[str, str]]) -> EligibilityRule:
        if not pairs:
            raise ConfigurationError("eligibility rule needs at least one condition")
        return cls(requirements=tuple((str(c), str(v)) for c, v in pairs))

    def describe(self) -> list[str]:
        """Human readable conditions, e.g. ``0-4.ステータス: 1.貸出中``."""
        return [f"{column}: {value}" for column, value in self.requirements]


class EligibilityEvaluator:
    def partition(
        self,
        rows: Sequence[RowRef],
        rule: EligibilityRule,
        headers: Sequence[str],
    ) -> tuple[list[RowRef], list[RowRef]]:
        """Split rows into (eligible, ineligible), preserving input order.

        Raises:
            ConfigurationError: a rule column is absent from ``headers``
        """
        position = {name: i for i, name in enumerate(headers)}
        missing = [column for column, _ in rule.requirements if column not in position]
        if missing:
            raise ConfigurationError(f"eligibility columns missing from headers: {missing}")

        checks = [(position[column], required) for column, required in rule.requirements]
        eligible: list[RowRef] = []
        ineligible: list[RowRef] = []
        for row in rows:
            if all(row.values[idx] == required for idx, required in checks):
                eligible.append(row)
            else:
                ineligible.append(row)
        return eligible, ineligible
