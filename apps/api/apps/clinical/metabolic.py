"""
Metabolic derivations: BMR, TDEE and BMI.

Pure functions with no I/O and no exceptions for in-domain numeric input.
BMR and TDEE are in MJ/day (Schofield-style age-banded linear equations);
BMI is kg/m².

Documented fallbacks instead of errors:
- age below 18 uses the 18-30 band
- unknown age uses DEFAULT_AGE
- gender other than 'male' uses the female coefficients
- unknown work type uses the 'medium' activity factor
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

DEFAULT_AGE = 25
DEFAULT_WORK_TYPE = 'medium'

# (upper age bound inclusive, slope, intercept); the last band is open-ended
BMR_BANDS = {
    'male': (
        (30, 0.0669, 2.28),
        (60, 0.0592, 2.48),
        (None, 0.0563, 2.15),
    ),
    'female': (
        (30, 0.0546, 2.33),
        (60, 0.0407, 2.90),
        (None, 0.0424, 2.38),
    ),
}

ACTIVITY_FACTORS = {
    'male': {'soft': 1.55, 'medium': 1.76, 'heavy': 2.10},
    'female': {'soft': 1.56, 'medium': 1.64, 'heavy': 1.82},
}


def _sex_key(gender):
    return 'male' if str(gender or '').strip().lower() == 'male' else 'female'


def bmr_band(age_years):
    """Index of the BMR band for an age: 0 for <=30 (including under 18), 1 for 31-60, 2 above."""
    age = DEFAULT_AGE if age_years is None else age_years
    for index, (upper, _, _) in enumerate(BMR_BANDS['male']):
        if upper is None or age <= upper:
            return index
    return len(BMR_BANDS['male']) - 1


def bmr(weight_kg, age_years, gender) -> float:
    """
    Basal metabolic rate in MJ/day.

    The 30 and 60 year boundaries belong to the lower band, so
    bmr(70, 30, 'male') uses the 18-30 equation and bmr(70, 31, 'male')
    the 30-60 one.
    """
    _, slope, intercept = BMR_BANDS[_sex_key(gender)][bmr_band(age_years)]
    return slope * float(weight_kg) + intercept


def normalize_work_type(work_type):
    """Return (work_type, defaulted) with unknown or empty values mapped to 'medium'."""
    key = str(work_type or '').strip().lower()
    if key in ACTIVITY_FACTORS['male']:
        return key, False
    return DEFAULT_WORK_TYPE, True


def tdee(bmr_value, work_type, gender) -> float:
    """Total daily energy expenditure in MJ/day: BMR times the activity factor."""
    key, _ = normalize_work_type(work_type)
    return float(bmr_value) * ACTIVITY_FACTORS[_sex_key(gender)][key]


def bmi(weight_kg, height_cm) -> Optional[float]:
    """Body mass index, or None when height is missing or not positive."""
    if weight_kg is None or height_cm is None:
        return None
    height_m = float(height_cm) / 100
    if height_m <= 0:
        return None
    return float(weight_kg) / (height_m ** 2)


def to_decimal(value, places='0.01'):
    """Round a derived value for storage; None stays None."""
    if value is None:
        return None
    return Decimal(str(value)).quantize(Decimal(places), rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class MetabolicResult:
    bmi: Optional[Decimal]
    bmr: Optional[Decimal]
    tdee: Optional[Decimal]
    age_used: Optional[int] = None
    age_defaulted: bool = False
    work_type_used: Optional[str] = None
    work_type_defaulted: bool = False

    def as_fields(self):
        return {'bmi': self.bmi, 'bmr': self.bmr, 'tdee': self.tdee}


def derive_metrics(weight_kg, height_cm, age_years, gender, work_type,
                   default_age=DEFAULT_AGE) -> MetabolicResult:
    """
    Compute all derived fields for one vitals snapshot.

    Without weight nothing can be derived and every field is None. With
    weight, bmr and tdee are always present; bmi additionally needs height.
    Values are rounded to two decimals.
    """
    if weight_kg is None:
        return MetabolicResult(bmi=None, bmr=None, tdee=None)

    age_defaulted = age_years is None
    age = default_age if age_defaulted else int(age_years)
    work_key, work_defaulted = normalize_work_type(work_type)

    bmr_value = bmr(weight_kg, age, gender)
    return MetabolicResult(
        bmi=to_decimal(bmi(weight_kg, height_cm)),
        bmr=to_decimal(bmr_value),
        tdee=to_decimal(tdee(bmr_value, work_key, gender)),
        age_used=age,
        age_defaulted=age_defaulted,
        work_type_used=work_key,
        work_type_defaulted=work_defaulted,
    )
