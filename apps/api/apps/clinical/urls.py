"""
Clinical URLs - Patients, Vitals, Diet compliance, Diet plans, Stats
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import (
    DietComplianceRangeView,
    DietComplianceView,
    DietComplianceWeeklyView,
    DietPlanTemplateListView,
    MealRecordView,
    PatientViewSet,
    StatsView,
    VitalsViewSet,
)

router = DefaultRouter()
router.register(r'patients', PatientViewSet, basename='patient')
router.register(r'vitals', VitalsViewSet, basename='vitals')

urlpatterns = [
    path('diet-compliance/', DietComplianceView.as_view(), name='diet-compliance'),
    path('diet-compliance/range/', DietComplianceRangeView.as_view(), name='diet-compliance-range'),
    path('diet-compliance/weekly/', DietComplianceWeeklyView.as_view(), name='diet-compliance-weekly'),
    path('meals/', MealRecordView.as_view(), name='meal-record'),
    path('diet-plans/templates/', DietPlanTemplateListView.as_view(), name='diet-plan-templates'),
    path('stats/', StatsView.as_view(), name='stats'),

    # Standard read/write via router
    path('', include(router.urls)),
]
