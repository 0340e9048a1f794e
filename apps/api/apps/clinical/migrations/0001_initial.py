# Generated migration for clinical app: patients, vitals, diet ledger, audit

import uuid
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('authz', '0003_doctor_invite_token'),
        ('onboarding', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Patient',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('email', models.EmailField(max_length=255, unique=True)),
                ('patient_uid', models.CharField(blank=True, help_text='Public identifier, assigned on first approval', max_length=20, null=True, unique=True)),
                ('status', models.CharField(choices=[('PENDING', 'Pending'), ('APPROVED', 'Approved'), ('REJECTED', 'Rejected')], default='PENDING', max_length=20)),
                ('is_cured', models.BooleanField(default=False)),
                ('cured_at', models.DateTimeField(blank=True, null=True)),
                ('profile', models.JSONField(default=dict, help_text='personal_info, address_info, emergency_contact, lifestyle')),
                ('rejection_reason', models.TextField(blank=True, default='')),
                ('approved_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('doctor', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='patients', to='authz.doctor')),
                ('invite_token', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='patients', to='onboarding.invitetoken')),
                ('user', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='patient_profile', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Patient',
                'verbose_name_plural': 'Patients',
                'db_table': 'patient',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='VitalsRecord',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('recorded_at', models.DateTimeField()),
                ('pulse_rate', models.PositiveIntegerField(blank=True, null=True)),
                ('heart_rate', models.PositiveIntegerField(blank=True, null=True)),
                ('temperature', models.DecimalField(blank=True, decimal_places=1, max_digits=4, null=True)),
                ('blood_pressure_systolic', models.PositiveIntegerField(blank=True, null=True)),
                ('blood_pressure_diastolic', models.PositiveIntegerField(blank=True, null=True)),
                ('random_blood_sugar', models.DecimalField(blank=True, decimal_places=1, max_digits=6, null=True)),
                ('respiratory_rate', models.PositiveIntegerField(blank=True, null=True)),
                ('oxygen_saturation', models.PositiveIntegerField(blank=True, null=True)),
                ('weight', models.DecimalField(blank=True, decimal_places=1, help_text='kg', max_digits=5, null=True)),
                ('height', models.DecimalField(blank=True, decimal_places=1, help_text='cm', max_digits=5, null=True)),
                ('assessment_type', models.CharField(blank=True, choices=[('naadi', 'Naadi'), ('thegi', 'Thegi')], default='', max_length=10)),
                ('naadi', models.CharField(blank=True, default='', max_length=50)),
                ('thegi', models.CharField(blank=True, default='', max_length=50)),
                ('diagnosis', models.CharField(blank=True, default='', max_length=255)),
                ('medicines', models.JSONField(blank=True, default=list)),
                ('notes', models.TextField(blank=True, default='')),
                ('bmi', models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ('bmr', models.DecimalField(blank=True, decimal_places=2, help_text='MJ/day', max_digits=6, null=True)),
                ('tdee', models.DecimalField(blank=True, decimal_places=2, help_text='MJ/day', max_digits=6, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='vitals_records', to='clinical.patient')),
                ('recorded_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='recorded_vitals', to='authz.doctor')),
            ],
            options={
                'verbose_name': 'Vitals Record',
                'verbose_name_plural': 'Vitals Records',
                'db_table': 'vitals_record',
                'ordering': ['-recorded_at', '-created_at'],
            },
        ),
        migrations.CreateModel(
            name='DietEntry',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('date', models.DateField()),
                ('meal_type', models.CharField(choices=[('breakfast', 'Breakfast'), ('lunch', 'Lunch'), ('dinner', 'Dinner'), ('snack', 'Snack')], max_length=10)),
                ('completed', models.BooleanField(default=False)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('calorie_estimate', models.PositiveIntegerField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='diet_entries', to='clinical.patient')),
            ],
            options={
                'verbose_name': 'Diet Entry',
                'verbose_name_plural': 'Diet Entries',
                'db_table': 'diet_entry',
                'ordering': ['date', 'meal_type'],
            },
        ),
        migrations.CreateModel(
            name='CustomDietPlan',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('diagnosis', models.CharField(blank=True, default='', max_length=255)),
                ('plan_data', models.JSONField(default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='authored_diet_plans', to='authz.doctor')),
                ('patient', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='custom_diet_plan', to='clinical.patient')),
            ],
            options={
                'verbose_name': 'Custom Diet Plan',
                'verbose_name_plural': 'Custom Diet Plans',
                'db_table': 'custom_diet_plan',
            },
        ),
        migrations.CreateModel(
            name='ClinicalAuditLog',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('action', models.CharField(choices=[('create', 'Create'), ('update', 'Update')], max_length=10)),
                ('entity_type', models.CharField(choices=[('VitalsRecord', 'Vitals Record'), ('CustomDietPlan', 'Custom Diet Plan')], max_length=50)),
                ('entity_id', models.UUIDField()),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('actor_user', models.ForeignKey(blank=True, help_text='User who performed the action (null for system actions)', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='clinical_audit_logs', to=settings.AUTH_USER_MODEL)),
                ('patient', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='audit_logs', to='clinical.patient')),
            ],
            options={
                'verbose_name': 'Clinical Audit Log',
                'verbose_name_plural': 'Clinical Audit Logs',
                'db_table': 'clinical_audit_log',
                'ordering': ['-created_at'],
            },
        ),
        migrations.AddIndex(
            model_name='patient',
            index=models.Index(fields=['status'], name='idx_patient_status'),
        ),
        migrations.AddIndex(
            model_name='patient',
            index=models.Index(fields=['doctor', 'status'], name='idx_patient_doctor_status'),
        ),
        migrations.AddIndex(
            model_name='patient',
            index=models.Index(fields=['created_at'], name='idx_patient_created'),
        ),
        migrations.AddIndex(
            model_name='vitalsrecord',
            index=models.Index(fields=['patient', '-recorded_at'], name='idx_vitals_patient_recorded'),
        ),
        migrations.AddIndex(
            model_name='dietentry',
            index=models.Index(fields=['patient', 'date'], name='idx_diet_entry_patient_date'),
        ),
        migrations.AddConstraint(
            model_name='dietentry',
            constraint=models.UniqueConstraint(fields=('patient', 'date', 'meal_type'), name='uniq_diet_entry_patient_date_meal'),
        ),
        migrations.AddIndex(
            model_name='clinicalauditlog',
            index=models.Index(fields=['created_at'], name='idx_clinical_audit_created'),
        ),
        migrations.AddIndex(
            model_name='clinicalauditlog',
            index=models.Index(fields=['entity_type', 'entity_id'], name='idx_clinical_audit_entity'),
        ),
        migrations.AddIndex(
            model_name='clinicalauditlog',
            index=models.Index(fields=['patient'], name='idx_clinical_audit_patient'),
        ),
    ]
