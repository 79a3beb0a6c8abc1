from __future__ import annotations

import math
import numbers
import re
from enum import Enum
from typing import Any, Mapping

import numpy as np


class Coercion(str, Enum):
    """How a raw record value is turned into a number."""

    INTEGER = "integer"
    FLOAT = "float"


# Order and coercion expected by the fitted scaler and classifier.
# Changing this list requires retraining both artifacts.
FEATURE_SPECS: list[tuple[str, Coercion]] = [
    ("Age", Coercion.INTEGER),
    ("Gender", Coercion.INTEGER),
    ("Ethnicity", Coercion.INTEGER),
    ("EducationLevel", Coercion.INTEGER),
    ("BMI", Coercion.FLOAT),
    ("Smoking", Coercion.INTEGER),
    ("AlcoholConsumption", Coercion.FLOAT),
    ("PhysicalActivity", Coercion.FLOAT),
    ("DietQuality", Coercion.FLOAT),
    ("SleepQuality", Coercion.FLOAT),
    ("FamilyHistoryAlzheimers", Coercion.INTEGER),
    ("CardiovascularDisease", Coercion.INTEGER),
    ("Diabetes", Coercion.INTEGER),
    ("Depression", Coercion.INTEGER),
    ("HeadInjury", Coercion.INTEGER),
    ("Hypertension", Coercion.INTEGER),
    ("SystolicBP", Coercion.INTEGER),
    ("DiastolicBP", Coercion.INTEGER),
    ("CholesterolTotal", Coercion.FLOAT),
    ("CholesterolLDL", Coercion.FLOAT),
    ("CholesterolHDL", Coercion.FLOAT),
    ("CholesterolTriglycerides", Coercion.FLOAT),
    ("MMSE", Coercion.FLOAT),
    ("FunctionalAssessment", Coercion.FLOAT),
    ("MemoryComplaints", Coercion.INTEGER),
    ("BehavioralProblems", Coercion.INTEGER),
    ("ADL", Coercion.INTEGER),
    ("Confusion", Coercion.INTEGER),
    ("Disorientation", Coercion.INTEGER),
    ("PersonalityChanges", Coercion.INTEGER),
    ("DifficultyCompletingTasks", Coercion.INTEGER),
    ("Forgetfulness", Coercion.INTEGER),
]

FEATURE_ORDER: list[str] = [name for name, _ in FEATURE_SPECS]
NUM_FEATURES = len(FEATURE_ORDER)

_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")
_FLOAT_PREFIX = re.compile(r"\s*([+-]?(?:Infinity|\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?))")


def parse_int(value: Any) -> float:
    """Parse the leading integer of a value.

    Args:
        value: Raw value from a patient record (number, string or None).

    Returns:
        The integer as a float, or NaN when no integer can be read.
    """
    if value is None or isinstance(value, bool):
        return math.nan
    if isinstance(value, numbers.Real):
        try:
            if not math.isfinite(value):
                return math.nan
            return float(math.trunc(value))
        except OverflowError:
            # Integers too large for a float read as infinity, which has no integer part.
            return math.nan
    if not isinstance(value, str):
        return math.nan
    match = _INT_PREFIX.match(value)
    if match is None:
        return math.nan
    # float() saturates to +/-inf for digit runs too long to represent.
    return float(match.group(1))


def parse_float(value: Any) -> float:
    """Parse the leading decimal number of a value.

    Args:
        value: Raw value from a patient record or a form input.

    Returns:
        The parsed number, or NaN when no number can be read.
    """
    if value is None or isinstance(value, bool):
        return math.nan
    if isinstance(value, numbers.Real):
        try:
            return float(value)
        except OverflowError:
            return math.inf if value > 0 else -math.inf
    if not isinstance(value, str):
        return math.nan
    match = _FLOAT_PREFIX.match(value)
    if match is None:
        return math.nan
    token = match.group(1)
    if token.lstrip("+-") == "Infinity":
        return -math.inf if token.startswith("-") else math.inf
    return float(token)


_PARSERS = {
    Coercion.INTEGER: parse_int,
    Coercion.FLOAT: parse_float,
}


def build_feature_vector(record: Mapping[str, Any]) -> np.ndarray:
    """Encode a patient record as a fixed-order feature vector.

    Fields are read in ``FEATURE_ORDER``. Absent or unparseable fields are
    not rejected, they become NaN in their position.

    Args:
        record: Mapping of attribute name to raw value.

    Returns:
        Float array of shape ``(NUM_FEATURES,)``.
    """
    values = [_PARSERS[coercion](record.get(name)) for name, coercion in FEATURE_SPECS]
    return np.asarray(values, dtype=np.float64)


def missing_features(vector: np.ndarray) -> list[str]:
    """Return the names of the positions holding NaN."""
    return [name for name, value in zip(FEATURE_ORDER, vector) if math.isnan(value)]
