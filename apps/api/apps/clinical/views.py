"""
Clinical API views: patients, vitals, diet compliance and diet plans.

The role gate is the permission class; whether the caller may see or
change a particular patient is decided by the services (apps.clinical.access).
"""
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.authz.permissions import IsAdminOrDoctor, IsClinicalUser
from apps.clinical import diet, services, stats
from apps.clinical.access import patients_for_actor
from apps.clinical.diet_plans import TEMPLATES
from apps.clinical.serializers import (
    CustomDietPlanSerializer,
    CustomDietPlanWriteSerializer,
    DailyComplianceSerializer,
    DietEntrySerializer,
    HealthProgressSerializer,
    MealRecordSerializer,
    PatientDetailSerializer,
    PatientListSerializer,
    VitalsRecordSerializer,
    VitalsWriteSerializer,
    WeeklySummarySerializer,
)
from apps.core.exceptions import AppValidationError, VitalsNotFoundError
from apps.onboarding.views import request_actor


def _required_param(request, name):
    value = request.query_params.get(name)
    if not value:
        raise AppValidationError(detail=[f'{name}: this query parameter is required'])
    return value


def _own_patient_id(request, actor, supplied=None):
    """Patients act on their own record; everyone else must say which patient."""
    if supplied:
        return supplied
    if actor.is_patient:
        patient = getattr(request.user, 'patient_profile', None)
        if patient is not None:
            return patient.id
    raise AppValidationError(detail=['patient_id: this field is required'])


# ============================================================================
# Patients
# ============================================================================

class PatientViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for Patient endpoints.

    Endpoints:
    - GET /api/v1/patients/ - Patients visible to the caller
    - GET /api/v1/patients/{id}/ - Patient detail
    - GET /api/v1/patients/{id}/health-progress/ - Weight/BMR/TDEE trend
    - GET /api/v1/patients/{id}/diet-plan/?date=YYYY-MM-DD - Plan in force
    - PUT /api/v1/patients/{id}/custom-diet-plan/ - Replace custom plan

    Query parameters for list:
    - ?status=PENDING|APPROVED|REJECTED
    - ?is_cured=true|false

    RBAC:
    - Admin: all patients
    - Doctor: own patients (writes require APPROVED status)
    - Patient: own record
    """
    permission_classes = [IsClinicalUser]

    def get_queryset(self):
        queryset = patients_for_actor(request_actor(self.request))

        status_filter = self.request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter.upper())

        is_cured = self.request.query_params.get('is_cured')
        if is_cured is not None:
            queryset = queryset.filter(is_cured=is_cured.lower() == 'true')

        return queryset

    def get_serializer_class(self):
        if self.action == 'list':
            return PatientListSerializer
        return PatientDetailSerializer

    @action(detail=True, methods=['get'], url_path='health-progress')
    def health_progress(self, request, pk=None):
        result = services.health_progress(pk, actor=request_actor(request))
        return Response(HealthProgressSerializer(result).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=['get'], url_path='diet-plan')
    def diet_plan(self, request, pk=None):
        result = diet.plan_for_day(pk, request.query_params.get('date'), actor=request_actor(request))
        return Response(result, status=status.HTTP_200_OK)

    @action(detail=True, methods=['put'], url_path='custom-diet-plan',
            permission_classes=[IsAdminOrDoctor])
    def custom_diet_plan(self, request, pk=None):
        serializer = CustomDietPlanWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        plan = diet.save_custom_diet_plan(
            request_actor(request), pk,
            plan_data=serializer.validated_data['plan_data'],
            diagnosis=serializer.validated_data['diagnosis'],
        )
        return Response(CustomDietPlanSerializer(plan).data, status=status.HTTP_200_OK)


# ============================================================================
# Vitals
# ============================================================================

class VitalsViewSet(viewsets.GenericViewSet):
    """
    ViewSet for VitalsRecord endpoints.

    Endpoints:
    - GET /api/v1/vitals/?patient_id= - History, newest first
    - GET /api/v1/vitals/latest/?patient_id= - Latest record (404 when none)
    - POST /api/v1/vitals/ - Record vitals (assigned doctor or admin)
    - PUT|PATCH /api/v1/vitals/{id}/ - Amend a record

    Request (POST):
    {
        "patient_id": "uuid",
        "context": "doctor_visit",   # or "quick_entry"
        "weight": 70.5, "height": 172,
        "blood_pressure_systolic": 120, "blood_pressure_diastolic": 80,
        "naadi": "Vatham", "diagnosis": "Hypertension", ...
    }
    bmi/bmr/tdee are always computed by the server.
    """

    def get_permissions(self):
        if self.action in ('create', 'update', 'partial_update'):
            return [IsAdminOrDoctor()]
        return [IsClinicalUser()]

    def list(self, request):
        actor = request_actor(request)
        patient_id = _own_patient_id(request, actor, request.query_params.get('patient_id'))
        history = services.get_history(patient_id, actor=actor)

        page = self.paginate_queryset(history)
        return self.get_paginated_response(VitalsRecordSerializer(page, many=True).data)

    @action(detail=False, methods=['get'])
    def latest(self, request):
        actor = request_actor(request)
        patient_id = _own_patient_id(request, actor, request.query_params.get('patient_id'))
        record = services.get_latest(patient_id, actor=actor)
        if record is None:
            raise VitalsNotFoundError(message='No vitals recorded for this patient')
        return Response(VitalsRecordSerializer(record).data, status=status.HTTP_200_OK)

    def create(self, request):
        serializer = VitalsWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        if 'patient_id' not in serializer.validated_data:
            raise AppValidationError(detail=['patient_id: this field is required'])

        record = services.create_vitals(
            request_actor(request),
            serializer.validated_data['patient_id'],
            serializer.raw_fields(),
            context=serializer.validated_data['context'],
        )
        return Response(VitalsRecordSerializer(record).data, status=status.HTTP_201_CREATED)

    def update(self, request, pk=None):
        serializer = VitalsWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        record = services.update_vitals(
            request_actor(request), pk,
            serializer.raw_fields(),
            context=serializer.validated_data['context'],
        )
        return Response(VitalsRecordSerializer(record).data, status=status.HTTP_200_OK)

    def partial_update(self, request, pk=None):
        return self.update(request, pk=pk)


# ============================================================================
# Diet compliance
# ============================================================================

class DietComplianceView(APIView):
    """GET /api/v1/diet-compliance/?patient_id=&date=YYYY-MM-DD"""
    permission_classes = [IsClinicalUser]

    def get(self, request):
        actor = request_actor(request)
        patient_id = _own_patient_id(request, actor, request.query_params.get('patient_id'))
        result = diet.daily_compliance(patient_id, _required_param(request, 'date'), actor=actor)
        return Response(DailyComplianceSerializer(result).data, status=status.HTTP_200_OK)


class DietComplianceRangeView(APIView):
    """GET /api/v1/diet-compliance/range/?patient_id=&start=&end="""
    permission_classes = [IsClinicalUser]

    def get(self, request):
        actor = request_actor(request)
        patient_id = _own_patient_id(request, actor, request.query_params.get('patient_id'))
        days = diet.range_compliance(
            patient_id,
            _required_param(request, 'start'),
            _required_param(request, 'end'),
            actor=actor,
        )
        return Response(DailyComplianceSerializer(days, many=True).data, status=status.HTTP_200_OK)


class DietComplianceWeeklyView(APIView):
    """GET /api/v1/diet-compliance/weekly/?patient_id=&end=YYYY-MM-DD (default today)"""
    permission_classes = [IsClinicalUser]

    def get(self, request):
        actor = request_actor(request)
        patient_id = _own_patient_id(request, actor, request.query_params.get('patient_id'))
        summary = diet.weekly_summary(patient_id, request.query_params.get('end'), actor=actor)
        return Response(WeeklySummarySerializer(summary).data, status=status.HTTP_200_OK)


class MealRecordView(APIView):
    """
    POST /api/v1/meals/

    Request: {"patient_id": "uuid", "date": "2024-05-06", "meal_type": "lunch",
              "completed": true, "calorie_estimate": 650}
    Patients may omit patient_id.
    """
    permission_classes = [IsClinicalUser]

    def post(self, request):
        serializer = MealRecordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        actor = request_actor(request)
        entry = diet.record_meal(
            actor,
            _own_patient_id(request, actor, data.get('patient_id')),
            data['date'],
            data['meal_type'],
            data['completed'],
            calorie_estimate=data.get('calorie_estimate'),
        )
        return Response(DietEntrySerializer(entry).data, status=status.HTTP_200_OK)


class DietPlanTemplateListView(APIView):
    """GET /api/v1/diet-plans/templates/ - Built-in weekly plans by diagnosis"""
    permission_classes = [IsAdminOrDoctor]

    def get(self, request):
        return Response(sorted(TEMPLATES.values(), key=lambda plan: plan['diagnosis']), status=status.HTTP_200_OK)


# ============================================================================
# Dashboard
# ============================================================================

class StatsView(APIView):
    """GET /api/v1/stats/ - Dashboard counters shaped by the caller's role"""
    permission_classes = [IsClinicalUser]

    def get(self, request):
        return Response(stats.stats_for(request_actor(request)), status=status.HTTP_200_OK)
