from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

from loguru import logger

from alzheimer_prediction.features import parse_float


@dataclass(frozen=True)
class FieldOption:
    """A selectable value of a select field."""

    value: int
    label: str


@dataclass(frozen=True)
class FormField:
    """Configuration for a single form input.

    The min/max/step bounds are advisory; they constrain the widget only and
    are not enforced by the endpoint.
    """

    name: str
    label: str
    kind: Literal["number", "select"] = "number"
    min_value: float | None = None
    max_value: float | None = None
    step: float | None = None
    options: tuple[FieldOption, ...] = ()


@dataclass(frozen=True)
class FormSection:
    """A titled group of form fields."""

    title: str
    icon: str
    fields: tuple[FormField, ...]


NO_YES = (FieldOption(0, "No"), FieldOption(1, "Yes"))


def _yes_no(name: str, label: str) -> FormField:
    return FormField(name, label, kind="select", options=NO_YES)


FORM_SECTIONS: tuple[FormSection, ...] = (
    FormSection(
        "Demographics",
        "👤",
        (
            FormField("Age", "Age", min_value=0, max_value=120, step=1),
            FormField(
                "Gender",
                "Gender",
                kind="select",
                options=(FieldOption(0, "Female"), FieldOption(1, "Male")),
            ),
            FormField(
                "Ethnicity",
                "Ethnicity",
                kind="select",
                options=(
                    FieldOption(0, "Caucasian"),
                    FieldOption(1, "African American"),
                    FieldOption(2, "Hispanic"),
                    FieldOption(3, "Asian"),
                    FieldOption(4, "Other"),
                ),
            ),
            FormField(
                "EducationLevel",
                "Education Level",
                kind="select",
                options=(
                    FieldOption(0, "Less than High School"),
                    FieldOption(1, "High School"),
                    FieldOption(2, "Some College"),
                    FieldOption(3, "College Degree"),
                    FieldOption(4, "Graduate Degree"),
                ),
            ),
        ),
    ),
    FormSection(
        "Lifestyle Factors",
        "🏃",
        (
            FormField("BMI", "BMI", min_value=10, max_value=50, step=0.01),
            FormField(
                "Smoking",
                "Smoking",
                kind="select",
                options=(FieldOption(0, "Non-smoker"), FieldOption(1, "Smoker")),
            ),
            FormField("AlcoholConsumption", "Alcohol Consumption (drinks/week)", min_value=0, step=0.01),
            FormField("PhysicalActivity", "Physical Activity (hours/week)", min_value=0, step=0.01),
            FormField("DietQuality", "Diet Quality (scale 1-10)", min_value=1, max_value=10, step=0.01),
            FormField("SleepQuality", "Sleep Quality (scale 1-10)", min_value=1, max_value=10, step=0.01),
        ),
    ),
    FormSection(
        "Medical History",
        "🌡️",
        (
            _yes_no("FamilyHistoryAlzheimers", "Family History of Alzheimer's"),
            _yes_no("CardiovascularDisease", "Cardiovascular Disease"),
            _yes_no("Diabetes", "Diabetes"),
            _yes_no("Depression", "Depression"),
            _yes_no("HeadInjury", "History of Head Injury"),
            _yes_no("Hypertension", "Hypertension"),
        ),
    ),
    FormSection(
        "Vital Signs",
        "❤️",
        (
            FormField("SystolicBP", "Systolic Blood Pressure (mmHg)", min_value=70, max_value=220, step=1),
            FormField("DiastolicBP", "Diastolic Blood Pressure (mmHg)", min_value=40, max_value=120, step=1),
            FormField("CholesterolTotal", "Total Cholesterol (mg/dL)", min_value=100, max_value=300, step=0.01),
            FormField("CholesterolLDL", "LDL Cholesterol (mg/dL)", min_value=0, max_value=200, step=0.01),
            FormField("CholesterolHDL", "HDL Cholesterol (mg/dL)", min_value=20, max_value=100, step=0.01),
            FormField("CholesterolTriglycerides", "Triglycerides (mg/dL)", min_value=50, max_value=500, step=0.01),
        ),
    ),
    FormSection(
        "Cognitive Assessment",
        "🧠",
        (
            FormField("MMSE", "Mini-Mental State Examination (0-30)", min_value=0, max_value=30, step=0.01),
            FormField(
                "FunctionalAssessment",
                "Functional Assessment (scale 1-10)",
                min_value=1,
                max_value=10,
                step=0.01,
            ),
            _yes_no("MemoryComplaints", "Memory Complaints"),
            _yes_no("BehavioralProblems", "Behavioral Problems"),
            FormField("ADL", "Activities of Daily Living (scale 1-10)", min_value=1, max_value=10, step=0.01),
        ),
    ),
    FormSection(
        "Symptoms",
        "🩺",
        (
            _yes_no("Confusion", "Confusion"),
            _yes_no("Disorientation", "Disorientation"),
            _yes_no("PersonalityChanges", "Personality Changes"),
            _yes_no("DifficultyCompletingTasks", "Difficulty Completing Tasks"),
            _yes_no("Forgetfulness", "Forgetfulness"),
        ),
    ),
)

FORM_FIELDS: dict[str, FormField] = {f.name: f for section in FORM_SECTIONS for f in section.fields}

SAMPLE_PATIENTS: dict[int, dict[str, float]] = {
    1: {
        "Age": 78,
        "Gender": 0,
        "Ethnicity": 0,
        "EducationLevel": 1,
        "BMI": 27.42,
        "Smoking": 0,
        "AlcoholConsumption": 4.15,
        "PhysicalActivity": 1.35,
        "DietQuality": 3.62,
        "SleepQuality": 4.91,
        "FamilyHistoryAlzheimers": 1,
        "CardiovascularDisease": 1,
        "Diabetes": 0,
        "Depression": 1,
        "HeadInjury": 0,
        "Hypertension": 1,
        "SystolicBP": 154,
        "DiastolicBP": 96,
        "CholesterolTotal": 246.31,
        "CholesterolLDL": 162.08,
        "CholesterolHDL": 38.77,
        "CholesterolTriglycerides": 312.54,
        "MMSE": 12.46,
        "FunctionalAssessment": 2.87,
        "MemoryComplaints": 1,
        "BehavioralProblems": 1,
        "ADL": 3.21,
        "Confusion": 1,
        "Disorientation": 1,
        "PersonalityChanges": 0,
        "DifficultyCompletingTasks": 1,
        "Forgetfulness": 1,
    },
    2: {
        "Age": 64,
        "Gender": 1,
        "Ethnicity": 3,
        "EducationLevel": 3,
        "BMI": 23.18,
        "Smoking": 0,
        "AlcoholConsumption": 1.2,
        "PhysicalActivity": 7.84,
        "DietQuality": 8.35,
        "SleepQuality": 8.12,
        "FamilyHistoryAlzheimers": 0,
        "CardiovascularDisease": 0,
        "Diabetes": 0,
        "Depression": 0,
        "HeadInjury": 0,
        "Hypertension": 0,
        "SystolicBP": 118,
        "DiastolicBP": 76,
        "CholesterolTotal": 182.44,
        "CholesterolLDL": 96.5,
        "CholesterolHDL": 64.2,
        "CholesterolTriglycerides": 121.73,
        "MMSE": 28.64,
        "FunctionalAssessment": 9.12,
        "MemoryComplaints": 0,
        "BehavioralProblems": 0,
        "ADL": 9.47,
        "Confusion": 0,
        "Disorientation": 0,
        "PersonalityChanges": 0,
        "DifficultyCompletingTasks": 0,
        "Forgetfulness": 0,
    },
}


class Predictor(Protocol):
    """Anything that can send a record to the prediction endpoint."""

    def predict(self, record: dict[str, float]) -> tuple[dict[str, Any] | None, str | None]: ...


@dataclass
class FormState:
    """Per-session state of the intake form.

    Holds the record being edited plus the outcome of the last submission.
    At most one of ``prediction`` and ``error`` is set at any time.
    """

    record: dict[str, float] = field(default_factory=dict)
    prediction: str | None = None
    demo_mode: bool = False
    error: str | None = None
    is_submitting: bool = False

    def edit_field(self, name: str, raw: Any) -> None:
        """Update one field from raw widget input.

        Args:
            name: Attribute name.
            raw: Raw input, parsed as a float regardless of the field kind.

        Raises:
            KeyError: If ``name`` is not a form field.
        """
        if name not in FORM_FIELDS:
            raise KeyError(f"Unknown form field: {name}")
        value = parse_float(raw)
        if math.isnan(value):
            # An empty input is sent as absent rather than as a NaN literal.
            self.record.pop(name, None)
        else:
            self.record[name] = value

    def load_sample(self, number: int) -> None:
        """Replace the whole record with one of the sample patients."""
        if number not in SAMPLE_PATIENTS:
            raise ValueError(f"Unknown sample patient {number}; expected one of {sorted(SAMPLE_PATIENTS)}")
        self.record = {name: float(value) for name, value in SAMPLE_PATIENTS[number].items()}

    def reset(self) -> None:
        """Clear the record and any displayed result or error."""
        self.record = {}
        self.prediction = None
        self.demo_mode = False
        self.error = None

    def start_submission(self) -> bool:
        """Mark a submission as in flight.

        Returns:
            False when a submission is already in flight, True otherwise.
        """
        if self.is_submitting:
            logger.debug("Ignoring duplicate submission")
            return False
        self.is_submitting = True
        self.error = None
        return True

    def send(self, client: Predictor) -> None:
        """Post the current record and store the outcome.

        The in-flight flag is left set; ``finish_submission`` clears it once
        the outcome has been displayed.
        """
        result, error = client.predict(dict(self.record))
        if error is not None:
            self.prediction = None
            self.demo_mode = False
            self.error = error
        else:
            self.prediction = str(result["prediction"])
            self.demo_mode = bool(result.get("demo_mode", False))

    def finish_submission(self) -> None:
        self.is_submitting = False

    def submit(self, client: Predictor) -> bool:
        """Start, send and finish a submission in one call.

        Returns:
            False when a submission was already in flight, True otherwise.
        """
        if not self.start_submission():
            return False
        try:
            self.send(client)
        finally:
            self.finish_submission()
        return True

    @property
    def panel(self) -> tuple[Literal["error", "result"], str] | None:
        """The single panel to display, if any."""
        if self.error:
            return "error", self.error
        if self.prediction:
            return "result", self.prediction
        return None
