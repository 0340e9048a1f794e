"""
Tests for BMR/TDEE/BMI derivation.
"""
from decimal import Decimal

import pytest

from apps.clinical import metabolic


class TestBMR:
    """Age-banded BMR equations in MJ/day."""

    def test_male_age_30_uses_lowest_band(self):
        assert metabolic.bmr(70, 30, 'male') == pytest.approx(0.0669 * 70 + 2.28)

    def test_male_age_31_uses_middle_band(self):
        assert metabolic.bmr(70, 31, 'male') == pytest.approx(0.0592 * 70 + 2.48)

    def test_age_60_belongs_to_middle_band(self):
        assert metabolic.bmr(60, 60, 'female') == pytest.approx(0.0407 * 60 + 2.90)

    def test_above_60_uses_open_band(self):
        assert metabolic.bmr(70, 61, 'male') == pytest.approx(0.0563 * 70 + 2.15)

    def test_under_18_uses_lowest_band(self):
        assert metabolic.bmr(50, 15, 'female') == pytest.approx(0.0546 * 50 + 2.33)

    def test_non_male_gender_uses_female_coefficients(self):
        assert metabolic.bmr(60, 25, 'other') == metabolic.bmr(60, 25, 'female')
        assert metabolic.bmr(60, 25, '') == metabolic.bmr(60, 25, 'female')

    def test_gender_is_case_insensitive(self):
        assert metabolic.bmr(70, 40, 'MALE') == metabolic.bmr(70, 40, 'male')


class TestTDEE:

    @pytest.mark.parametrize('work_type,factor', [
        ('soft', 1.55),
        ('medium', 1.76),
        ('heavy', 2.10),
    ])
    def test_male_activity_factors(self, work_type, factor):
        assert metabolic.tdee(6.0, work_type, 'male') == pytest.approx(6.0 * factor)

    def test_female_heavy_factor(self):
        assert metabolic.tdee(5.0, 'heavy', 'female') == pytest.approx(5.0 * 1.82)

    def test_unknown_work_type_uses_medium(self):
        assert metabolic.tdee(6.0, 'office', 'male') == pytest.approx(6.0 * 1.76)
        assert metabolic.normalize_work_type('office') == ('medium', True)
        assert metabolic.normalize_work_type(' Heavy ') == ('heavy', False)


class TestBMI:

    def test_bmi(self):
        assert metabolic.bmi(70, 175) == pytest.approx(70 / 1.75 ** 2)

    def test_missing_or_zero_height(self):
        assert metabolic.bmi(70, None) is None
        assert metabolic.bmi(70, 0) is None


class TestDeriveMetrics:

    def test_full_derivation_rounds_to_two_places(self):
        result = metabolic.derive_metrics(70, 175, 30, 'male', 'medium')

        assert result.bmi == Decimal('22.86')
        assert result.bmr == Decimal('6.96')
        # TDEE is computed from the unrounded BMR (6.963 * 1.76 = 12.25488)
        assert result.tdee == Decimal('12.25')
        assert result.age_defaulted is False
        assert result.work_type_defaulted is False

    def test_without_weight_nothing_is_derived(self):
        result = metabolic.derive_metrics(None, 175, 30, 'male', 'medium')
        assert result.as_fields() == {'bmi': None, 'bmr': None, 'tdee': None}

    def test_without_height_bmr_and_tdee_still_derived(self):
        result = metabolic.derive_metrics(70, None, 30, 'male', 'medium')
        assert result.bmi is None
        assert result.bmr == Decimal('6.96')

    def test_unknown_age_defaults_and_is_flagged(self):
        result = metabolic.derive_metrics(70, 175, None, 'male', 'medium')
        assert result.age_used == metabolic.DEFAULT_AGE
        assert result.age_defaulted is True
        assert result.bmr == metabolic.derive_metrics(70, 175, 25, 'male', 'medium').bmr

    def test_unknown_work_type_is_flagged(self):
        result = metabolic.derive_metrics(70, 175, 40, 'female', None)
        assert result.work_type_used == 'medium'
        assert result.work_type_defaulted is True
