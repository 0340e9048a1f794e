"""
Metrics instrumentation wrapper around prometheus_client.
"""
import logging

from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)


class MetricsRegistry:
    """
    Central metrics registry for the practice API.

    Provides typed access to all application metrics.
    """

    def __init__(self):
        """Initialize metrics registry."""
        self._setup_metrics()

    def _create_counter(self, name, description, labels=None):
        """Create a counter metric."""
        return Counter(name, description, labels or [])

    def _create_histogram(self, name, description, labels=None, buckets=None):
        """Create a histogram metric."""
        if buckets:
            return Histogram(name, description, labels or [], buckets=buckets)
        return Histogram(name, description, labels or [])

    def _setup_metrics(self):
        """Setup all application metrics."""

        # ===================================================================
        # HTTP Metrics
        # ===================================================================
        self.http_requests_total = self._create_counter(
            'http_requests_total',
            'Total HTTP requests',
            ['method', 'route', 'status']
        )

        self.http_request_duration_seconds = self._create_histogram(
            'http_request_duration_seconds',
            'HTTP request duration in seconds',
            ['method', 'route'],
            buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
        )

        self.exceptions_total = self._create_counter(
            'exceptions_total',
            'Total exceptions',
            ['exception_type', 'location']
        )

        # ===================================================================
        # Onboarding Metrics
        # ===================================================================
        self.invites_issued_total = self._create_counter(
            'invites_issued_total',
            'Invite tokens issued',
            ['role', 'issuer_role']
        )

        self.registrations_total = self._create_counter(
            'registrations_total',
            'Registration bind attempts',
            ['role', 'result']  # result: success|expired|consumed|mismatch|invalid
        )

        self.approval_transitions_total = self._create_counter(
            'approval_transitions_total',
            'Approval state machine transitions',
            ['entity_type', 'action', 'result']  # result: success|noop|invalid|denied
        )

        self.notifications_total = self._create_counter(
            'notifications_total',
            'Notification enqueue/dispatch outcomes',
            ['kind', 'result']
        )

        self.transient_retries_total = self._create_counter(
            'transient_retries_total',
            'Retries of operations after transient infrastructure errors',
            ['operation']
        )

        # ===================================================================
        # Clinical Metrics
        # ===================================================================
        self.vitals_recorded_total = self._create_counter(
            'vitals_recorded_total',
            'Vitals records created or updated',
            ['action', 'context']
        )

        self.metabolic_fallbacks_total = self._create_counter(
            'metabolic_fallbacks_total',
            'Metabolic derivations that used a documented default',
            ['kind']  # kind: work_type|age
        )

        self.clinical_auditlog_created_total = self._create_counter(
            'clinical_auditlog_created_total',
            'Clinical audit logs created',
            ['model', 'action']
        )

        self.meals_recorded_total = self._create_counter(
            'meals_recorded_total',
            'Meal completion updates',
            ['meal_type', 'completed']
        )


# Global metrics instance
metrics = MetricsRegistry()
