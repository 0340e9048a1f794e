"""
Diagnosis-keyed weekly diet templates and plan resolution.

Week days are ISO everywhere in this module: Monday=1 .. Sunday=7, and
`days[n - 1]` is the plan for ISO weekday n. Callers holding a JavaScript
style weekday (Sunday=0) convert it with `from_js_weekday` first.

Plan shape (templates and CustomDietPlan.plan_data alike):
    {
        "diagnosis": "Hypertension",
        "description": "...",
        "duration": 7,
        "days": [{"day": 1, "meals": {"breakfast": [...], "lunch": [...],
                  "dinner": [...], "snacks": [...]?, "notes": "..."?},
                  "instructions": "..."}, ...],
        "general_instructions": [...]
    }
"""
from datetime import date
from typing import Optional

from apps.core.exceptions import AppValidationError, DietPlanNotFoundError
from .models import CustomDietPlan

DAYS_PER_WEEK = 7
MAIN_MEALS = ('breakfast', 'lunch', 'dinner')


def _day(number, breakfast, lunch, dinner, instructions, notes=''):
    meals = {'breakfast': [breakfast], 'lunch': [lunch], 'dinner': [dinner]}
    if notes:
        meals['notes'] = notes
    return {'day': number, 'meals': meals, 'instructions': instructions}


# ============================================================================
# Templates
# ============================================================================

HYPERTENSION = {
    'diagnosis': 'Hypertension',
    'description': 'Siddha heart-healthy plan to help manage blood pressure',
    'duration': DAYS_PER_WEEK,
    'days': [
        _day(1, 'Fermented rice (overnight soaked rice) with curd',
             'Native rice + ash gourd sambar + greens stir-fry + raw banana stir-fry',
             'Millet upma + vegetable soup + figs + 1 glass of cow milk',
             'Monday - Pitham-reducing foods and fermented rice',
             'Ash gourd reduces Pitham.'),
        _day(2, 'Sago porridge or native rice porridge',
             'Millet rice + moong dal + cucumber curry + buttermilk',
             'Idli + mint chutney + 1 glass of cow milk',
             'Tuesday - Cooling foods with porridge'),
        _day(3, 'Ragi porridge (unsalted)',
             'Rice + drumstick sambar + flat beans stir-fry + buttermilk',
             '2 bananas + wheat chapati + bottle gourd curry + 1 glass of cow milk',
             'Wednesday - Pathiya unavu for circulation'),
        _day(4, 'Vegetable uthappam + 1 boiled egg',
             'Low-salt millet vegetable biryani + onion raita',
             'Millet idiyappam + mixed vegetable gravy + amla juice + 1 glass of cow milk',
             'Thursday - Amla and onion'),
        _day(5, 'Ragi dosa + onion chutney',
             'Low-salt millet curd rice + beetroot',
             'Tomato soup + 2 chapatis + 1 glass of cow milk',
             'Friday - Low-salt, Pitham-cooling foods'),
        _day(6, 'Wheat dosa + garlic chutney',
             'Rice + sambar + brinjal stir-fry + green leafy vegetable mash',
             'Poha upma with lemon juice + 2 bananas + 1 glass of cow milk',
             'Saturday - Garlic and therapeutic foods'),
        _day(7, 'Pongal with ghee + coconut chutney or moong dal sambar',
             'Rice with mutton or quail gravy OR paneer gravy',
             'Vegetable khichdi (low salt) + pineapple + 1 glass of milk',
             'Sunday - Pathiya unavu proteins with Pitha-reducing fruits'),
    ],
    'general_instructions': [
        'Use low-salt preparations throughout the diet',
        'Avoid foods that increase Pitham dosha',
        'Cooling foods like cucumber, ash gourd and buttermilk are beneficial',
        'Drink plenty of water',
    ],
}

HEMORRHOIDS = {
    'diagnosis': 'Hemorrhoids',
    'description': 'Siddha high-fiber plan to manage hemorrhoids and support digestion',
    'duration': DAYS_PER_WEEK,
    'days': [
        _day(1, 'Ragi porridge + banana',
             'Red rice + radish sambar + beetroot or scarlet gourd poriyal',
             'Vegetable khichdi',
             'Monday - Pitham-cooling foods and stool-softening radish'),
        _day(2, 'Idli + garlic chutney',
             'Millet rice + moong dal + elephant foot yam masiyal',
             'Wheat chapati + bottle gourd gravy',
             'Tuesday - Therapeutic yam'),
        _day(3, 'Wheat upma + papaya',
             'Native rice + pumpkin sambar + plantain flower poriyal',
             'Vegetable soup + 2 chapatis',
             'Wednesday - Papaya and plantain flower'),
        _day(4, 'Millet pongal (less spice)',
             'Rice + drumstick sambar + green leaf',
             'Rice kanji + boiled vegetables',
             'Thursday - High-fiber greens'),
        _day(5, 'Sago porridge or native rice porridge',
             'Native rice + mor kuzhambu + yam masiyal',
             'Millet dosa + vegetable kurma',
             'Friday - Yam with buttermilk curry'),
        _day(6, 'Overnight soaked raisins',
             "Millet rice + dal + lady's finger poriyal",
             'Wheat dosa + tomato soup',
             'Saturday - Raisins and okra'),
        _day(7, 'Ragi idiyappam + coconut milk',
             'Millet vegetable biryani (mild spice) + onion raita',
             'Light kanji + mashed vegetables',
             'Sunday - Coconut milk with mild spices'),
    ],
    'general_instructions': [
        'Prefer high-fiber foods and plenty of water',
        'Avoid very spicy and fried foods',
    ],
}

ANEMIA = {
    'diagnosis': 'Anemia',
    'description': 'Siddha iron-rich plan to help raise hemoglobin',
    'duration': DAYS_PER_WEEK,
    'days': [
        _day(1, 'Pazhaya soru with curd + sundal',
             'Native rice + drumstick sambar + keerai',
             'Vegetable upma + pomegranate',
             'Monday - Prebiotic foods and blood-enhancing fruits'),
        _day(2, 'Ragi porridge + palm jaggery',
             'Rice + moringa leaves kootu',
             'Idli + tomato chutney + grapes',
             'Tuesday - Palm jaggery and moringa'),
        _day(3, 'Vegetable uthappam + mint chutney',
             'Millet rice + fish or chicken curry (optional) + beetroot poriyal',
             'Urad dal adai with banana, ghee and jaggery',
             'Wednesday - Protein and beetroot'),
        _day(4, 'Ragi dosa + groundnut chutney',
             'Lemon rice + keerai masiyal',
             'Vegetable uthappam + mixed vegetable soup',
             'Thursday - Vitamin C for iron absorption'),
        _day(5, 'Millet pongal + moong dal sambar',
             'Native rice + flat beans poriyal',
             "Vegetable khichdi + figs with cow's milk",
             'Friday - Figs for anemia'),
        _day(6, 'Adai dosa + coriander chutney',
             'Thinai rice + drumstick sambar + buttermilk',
             'Poha upma + coconut chutney + 1 orange',
             'Saturday - Dal with citrus'),
        _day(7, 'Idiyappam + vegetable kurma + amla juice',
             'Rice + mutton soup or paneer gravy',
             'Dosa + tomato chutney + 2 bananas',
             'Sunday - Amla juice for iron absorption'),
    ],
    'general_instructions': [
        'Include iron-rich greens daily',
        'Pair iron sources with vitamin C',
    ],
}

DIABETES = {
    'diagnosis': 'Diabetes Mellitus',
    'description': 'Siddha plan to help manage blood sugar',
    'duration': DAYS_PER_WEEK,
    'days': [
        _day(1, 'Ragi kali + groundnut chutney',
             'Native rice + keerai sambar + bitter gourd poriyal',
             'Millet upma + vegetable soup',
             'Monday - Bitter gourd and millets'),
        _day(2, 'Pearl millet porridge (unsweetened)',
             'Chapati + green gram dal + keerai',
             'Ragi dosa + groundnut chutney',
             'Tuesday - Pearl millet and ragi'),
        _day(3, 'Adai + mint chutney',
             'Thinai rice + flat beans sambar + scarlet gourd poriyal',
             'Sundal vegetable salad',
             'Wednesday - Protein-rich day'),
        _day(4, 'Ragi idiyappam + vegetable kurma',
             'Native rice + rasam + bottle gourd poriyal',
             'Poha upma + coconut chutney',
             'Thursday - Cooling foods to balance Pitham'),
        _day(5, 'Broken wheat upma + sprouts salad',
             'Ponni rice + brinjal sambar + keerai',
             'Uthappam + vegetable curry',
             'Friday - Greens for glucose support'),
        _day(6, 'Thinai dosa + coconut chutney + 1 boiled egg or paneer',
             'Native rice + bitter gourd fry + moong dal',
             'Sundal + vegetable salad',
             'Saturday - Protein with bitter gourd'),
        _day(7, 'Soaked fenugreek water + 2 idli + tomato chutney',
             'Ponni rice + drumstick sambar + snake gourd poriyal',
             'Vegetable soup + chapati + 1 boiled egg',
             'Sunday - Fenugreek water and drumstick'),
    ],
    'general_instructions': [
        'Avoid refined sugar and sweetened drinks',
        'Prefer millets over polished rice',
    ],
}

TEMPLATES = {plan['diagnosis']: plan for plan in (HYPERTENSION, HEMORRHOIDS, ANEMIA, DIABETES)}


# ============================================================================
# Week days
# ============================================================================

def iso_weekday(on_date: date) -> int:
    """Monday=1 .. Sunday=7."""
    return on_date.isoweekday()


def from_js_weekday(js_day: int) -> int:
    """Convert a Sunday=0 .. Saturday=6 weekday to ISO Monday=1 .. Sunday=7."""
    if js_day not in range(7):
        raise AppValidationError(detail=[f'weekday: {js_day} is not in 0..6'])
    return 7 if js_day == 0 else js_day


# ============================================================================
# Resolution
# ============================================================================

def get_template(diagnosis: str) -> Optional[dict]:
    """Template for a diagnosis (case-insensitive), or None."""
    wanted = (diagnosis or '').strip().lower()
    for name, plan in TEMPLATES.items():
        if name.lower() == wanted:
            return plan
    return None


def day_plan(plan: dict, weekday: int) -> dict:
    """
    The plan entry for ISO `weekday` (1..7).

    Raises:
        AppValidationError: weekday outside 1..7 or beyond the plan's days
    """
    days = plan.get('days') or []
    if weekday not in range(1, DAYS_PER_WEEK + 1) or weekday > len(days):
        raise AppValidationError(detail=[f'weekday: {weekday} is not in 1..{DAYS_PER_WEEK}'])
    return days[weekday - 1]


def resolve_diet_plan(patient) -> dict:
    """
    Plan in force for a patient: their custom plan when a doctor has written
    one, otherwise the template for the diagnosis on the latest vitals record.

    Returns:
        {'source': 'custom'|'template', 'diagnosis': str, 'plan': dict}

    Raises:
        DietPlanNotFoundError: No custom plan, and no diagnosis or no
            template for it
    """
    custom = CustomDietPlan.objects.filter(patient=patient).first()
    if custom is not None:
        return {'source': 'custom', 'diagnosis': custom.diagnosis, 'plan': custom.plan_data}

    latest = (
        patient.vitals_records.exclude(diagnosis='')
        .order_by('-recorded_at', '-created_at')
        .values_list('diagnosis', flat=True)
        .first()
    )
    if not latest:
        raise DietPlanNotFoundError(detail=['no diagnosis recorded for this patient'])

    template = get_template(latest)
    if template is None:
        raise DietPlanNotFoundError(detail=[f'no diet template for diagnosis: {latest}'])
    return {'source': 'template', 'diagnosis': template['diagnosis'], 'plan': template}


def validate_plan_shape(plan_data) -> None:
    """
    Check a doctor-authored plan: seven days in order, each with non-empty
    breakfast, lunch and dinner lists; snacks optional.

    Raises:
        AppValidationError: listing every problem found
    """
    if not isinstance(plan_data, dict):
        raise AppValidationError(detail=['plan_data: must be an object'])

    days = plan_data.get('days')
    if not isinstance(days, list) or len(days) != DAYS_PER_WEEK:
        raise AppValidationError(detail=[f'days: must list exactly {DAYS_PER_WEEK} days'])

    problems = []
    for index, entry in enumerate(days, start=1):
        meals = entry.get('meals') if isinstance(entry, dict) else None
        if not isinstance(meals, dict):
            problems.append(f'days[{index}].meals: must be an object')
            continue
        if entry.get('day', index) != index:
            problems.append(f'days[{index}].day: must be {index}')
        for meal in MAIN_MEALS:
            items = meals.get(meal)
            if not isinstance(items, list) or not items or not all(isinstance(i, str) and i.strip() for i in items):
                problems.append(f'days[{index}].meals.{meal}: must be a non-empty list of strings')
        snacks = meals.get('snacks')
        if snacks is not None and not isinstance(snacks, list):
            problems.append(f'days[{index}].meals.snacks: must be a list')
    if problems:
        raise AppValidationError(detail=problems)
