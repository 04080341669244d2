"""
Answer normalization and comparison for question-answering evaluation.

A gold result and a predicted result are both aggregated results (variable
-> values) with at most two variables: a value variable and optionally a
human-readable name variable (any variable whose name contains ``name``).
The gold result's value variable selects one of four comparison modes:

``targetValue``
    Gold values are literals.  When every gold value is a date literal,
    both sides are reduced to years.  Predicted values lose their datatype
    and language suffixes and must equal the gold set exactly.
``answerSubset``
    Predicted values lose their datatype suffix and are reduced to the last
    ``/`` segment (entity id); date literals are reduced to years.  The gold
    set must be a subset of the cleaned predicted set.
``answer``
    Same cleaning as ``answerSubset``, but the sets must be equal.
raw
    Any other value variable: plain set equality with no cleaning.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Iterable, Mapping, Optional, Tuple

from rdfqa.errors import ContractViolation

__all__ = [
    "ComparisonMode",
    "answers_equal",
    "convert_dates_to_years",
    "extract_clean_answers",
    "is_date_literal",
    "select_comparison_mode",
]

TARGET_VALUE_VARIABLE = "targetValue"
ANSWER_SUBSET_VARIABLE = "answerSubset"
ANSWER_VARIABLE = "answer"
NAME_MARKER = "name"

_DATE_DATATYPE = re.compile(r"XMLSchema#date", re.IGNORECASE)
_LANGUAGE_TAG = re.compile(r"@[a-zA-Z\-]+$")
_YEAR = re.compile(r"([0-9]{3,4})")

ResultLike = Mapping[str, Iterable[str]]


class ComparisonMode(str, Enum):
    """How predicted answers are cleaned and compared to gold answers."""

    TARGET_VALUE = TARGET_VALUE_VARIABLE
    ANSWER_SUBSET = ANSWER_SUBSET_VARIABLE
    ANSWER = ANSWER_VARIABLE
    RAW = "raw"


def _ordered(values: Optional[Iterable[str]]) -> list[str]:
    return list(dict.fromkeys(values or ()))


def _check_shape(result: ResultLike, label: str) -> None:
    if len(result) > 2:
        variables = ", ".join(result)
        raise ContractViolation(
            f"Unknown target variable: {label} result has {len(result)} variables ({variables})"
        )


def _is_empty(result: Optional[ResultLike]) -> bool:
    return not result or not any(_ordered(values) for values in result.values())


def is_date_literal(value: str) -> bool:
    """True for literals typed with an XML Schema date datatype."""
    _, sep, datatype = value.partition("^^")
    return bool(sep) and bool(_DATE_DATATYPE.search(datatype))


def convert_dates_to_years(values: Iterable[str]) -> list[str]:
    """Reduce date literals to their year; other values are dropped.

    ``2008-12-31^^http://www.w3.org/2001/XMLSchema#datetime`` becomes
    ``2008``.
    """
    return _ordered(
        value.split("^^", 1)[0].split("-", 1)[0] for value in values if is_date_literal(value)
    )


def _leading_year(value: str) -> str:
    match = _YEAR.search(value)
    return match.group(1) if match else value


def _clean_literal(value: str, to_year: bool) -> str:
    value = value.split("^^", 1)[0]
    value = _LANGUAGE_TAG.sub("", value)
    return _leading_year(value) if to_year else value


def _clean_entity(value: str) -> str:
    is_date = is_date_literal(value)
    value = value.split("^^", 1)[0]
    value = value.rstrip("/").rsplit("/", 1)[-1]
    return _leading_year(value) if is_date else value


def select_comparison_mode(gold: Optional[ResultLike]) -> Tuple[ComparisonMode, Optional[str]]:
    """Return the comparison mode and the gold value variable.

    Raises:
        ContractViolation: If *gold* is ``None`` or has more than two variables
    """
    if gold is None:
        raise ContractViolation("Gold results should not be None")
    _check_shape(gold, "gold")

    value_var = None
    for key in gold:
        if key == TARGET_VALUE_VARIABLE:
            return ComparisonMode.TARGET_VALUE, key
        if NAME_MARKER not in key:
            value_var = key

    if value_var == ANSWER_SUBSET_VARIABLE:
        return ComparisonMode.ANSWER_SUBSET, value_var
    if value_var == ANSWER_VARIABLE:
        return ComparisonMode.ANSWER, value_var
    return ComparisonMode.RAW, value_var


def _predicted_variables(pred: ResultLike) -> Tuple[Optional[str], Optional[str]]:
    """(value variable, non-empty name variable) of a predicted result."""
    value_var = name_var = None
    for key, values in pred.items():
        if NAME_MARKER not in key:
            value_var = key
        elif _ordered(values):
            name_var = key
    return value_var, name_var


def _extract(
    gold: Optional[ResultLike], pred: Optional[ResultLike]
) -> Tuple[ComparisonMode, list[str], list[str]]:
    mode, gold_var = select_comparison_mode(gold)

    gold_answers = _ordered(gold.get(gold_var)) if gold_var is not None else []
    has_date = False
    if mode is ComparisonMode.TARGET_VALUE:
        has_date = bool(gold_answers) and all(is_date_literal(v) for v in gold_answers)
        if has_date:
            gold_answers = convert_dates_to_years(gold_answers)

    if _is_empty(pred):
        return mode, gold_answers, []
    _check_shape(pred, "predicted")

    value_var, name_var = _predicted_variables(pred)
    if mode is ComparisonMode.TARGET_VALUE:
        # Literal gold values are compared against labels when the prediction has them.
        source = pred[name_var] if name_var is not None else pred.get(value_var)
        pred_answers = _ordered(_clean_literal(v, has_date) for v in source or ())
    elif mode in (ComparisonMode.ANSWER_SUBSET, ComparisonMode.ANSWER):
        pred_answers = _ordered(_clean_entity(v) for v in pred.get(value_var) or ())
    else:
        pred_answers = _ordered(pred.get(value_var))
    return mode, gold_answers, pred_answers


def extract_clean_answers(
    gold: Optional[ResultLike], pred: Optional[ResultLike]
) -> Tuple[list[str], list[str]]:
    """Cleaned (gold, predicted) answer lists, ready for scoring scripts.

    Both lists are duplicate-free and keep first-seen order.  An absent or
    empty prediction yields an empty predicted list.

    Raises:
        ContractViolation: If either result has an unsupported shape
    """
    _, gold_answers, pred_answers = _extract(gold, pred)
    return gold_answers, pred_answers


def answers_equal(gold: Optional[ResultLike], pred: Optional[ResultLike]) -> bool:
    """Whether the predicted answers match the gold answers.

    Always false for an absent or empty prediction.

    Raises:
        ContractViolation: If either result has an unsupported shape
    """
    if gold is None:
        raise ContractViolation("Gold results should not be None")
    if _is_empty(pred):
        return False

    mode, gold_answers, pred_answers = _extract(gold, pred)
    if mode is ComparisonMode.ANSWER_SUBSET:
        return set(gold_answers) <= set(pred_answers)
    return set(gold_answers) == set(pred_answers)
