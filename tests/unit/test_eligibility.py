from __future__ import annotations

import pytest

from sheet_viewer.config.loader import DEFAULT_ELIGIBILITY
from sheet_viewer.models.dataset import RowRef
from sheet_viewer.services.eligibility import EligibilityEvaluator, EligibilityRule
from sheet_viewer.services.errors import ConfigurationError


def _rows(dataset):
    return [dataset.row(i) for i in range(len(dataset))]


def test_partition_default_rule(sample_dataset):
    rule = EligibilityRule.from_pairs(DEFAULT_ELIGIBILITY)
    eligible, ineligible = EligibilityEvaluator().partition(_rows(sample_dataset), rule, sample_dataset.headers)
    assert [r.values[0] for r in eligible] == ["A001", "A004"]
    assert [r.values[0] for r in ineligible] == ["A002", "A003"]


def test_partition_is_a_true_partition(sample_dataset):
    rule = EligibilityRule.from_pairs(DEFAULT_ELIGIBILITY)
    rows = _rows(sample_dataset)
    eligible, ineligible = EligibilityEvaluator().partition(rows, rule, sample_dataset.headers)
    assert len(eligible) + len(ineligible) == len(rows)
    assert {r.identity for r in eligible}.isdisjoint({r.identity for r in ineligible})


def test_columns_resolved_by_name_not_position():
    headers = ("1-4.ユーザー機の預り有無", "メモ", "0-4.ステータス")
    rows = [RowRef(0, ("有り", "", "1.貸出中")), RowRef(1, ("有り", "", "2.保管中"))]
    eligible, ineligible = EligibilityEvaluator().partition(
        rows, EligibilityRule.from_pairs(DEFAULT_ELIGIBILITY), headers
    )
    assert [r.identity for r in eligible] == [0]
    assert [r.identity for r in ineligible] == [1]


def test_missing_rule_column_raises_before_evaluating():
    headers = ("0-4.ステータス",)
    with pytest.raises(ConfigurationError) as e:
        EligibilityEvaluator().partition(
            [RowRef(0, ("1.貸出中",))], EligibilityRule.from_pairs(DEFAULT_ELIGIBILITY), headers
        )
    assert "1-4.ユーザー機の預り有無" in str(e.value)


def test_empty_selection_partitions_to_nothing(sample_dataset):
    eligible, ineligible = EligibilityEvaluator().partition(
        [], EligibilityRule.from_pairs(DEFAULT_ELIGIBILITY), sample_dataset.headers
    )
    assert eligible == [] and ineligible == []


def test_rule_requires_conditions_and_describes():
    with pytest.raises(ConfigurationError):
        EligibilityRule.from_pairs([])
    rule = EligibilityRule.from_pairs(DEFAULT_ELIGIBILITY)
    assert rule.describe() == ["0-4.ステータス: 1.貸出中", "1-4.ユーザー機の預り有無: 有り"]
