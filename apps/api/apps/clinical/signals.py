"""
Clinical signals and their notification receivers.
"""
from django.dispatch import Signal, receiver

from apps.core.notifications import enqueue_on_commit

# Emitted after a vitals record is created or updated
# Payload (UUIDs as strings, NO PHI):
#   - vitals_id: VitalsRecord UUID
#   - patient_id: Patient UUID
#   - action: 'create' | 'update'
vitals_recorded = Signal()


@receiver(vitals_recorded)
def on_vitals_recorded(sender, vitals_id, patient_id, action, **kwargs):
    # Patients are only told about new visits, not corrections
    if action != 'create':
        return
    from .tasks import send_vitals_recorded_email
    enqueue_on_commit(
        send_vitals_recorded_email, 'vitals_recorded', 'VitalsRecord', vitals_id,
        {'vitals_id': vitals_id},
    )
