# Generated migration for onboarding app: invite tokens and approval audit

import uuid
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('authz', '0002_seed_roles'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='InviteToken',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('token', models.CharField(max_length=64, unique=True)),
                ('role', models.CharField(choices=[('DOCTOR', 'Doctor'), ('PATIENT', 'Patient')], max_length=10)),
                ('recipient_email', models.EmailField(blank=True, default='', max_length=255)),
                ('recipient_name', models.CharField(blank=True, default='', max_length=255)),
                ('expires_at', models.DateTimeField()),
                ('consumed_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('created_by_user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='issued_invites', to=settings.AUTH_USER_MODEL)),
                ('issuing_doctor', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='issued_invites', to='authz.doctor')),
            ],
            options={
                'verbose_name': 'Invite Token',
                'verbose_name_plural': 'Invite Tokens',
                'db_table': 'invite_token',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='ApprovalAuditLog',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('entity_type', models.CharField(choices=[('Doctor', 'Doctor'), ('Patient', 'Patient')], max_length=10)),
                ('entity_id', models.UUIDField()),
                ('from_status', models.CharField(max_length=20)),
                ('to_status', models.CharField(max_length=20)),
                ('action', models.CharField(choices=[('approve', 'Approve'), ('reject', 'Reject'), ('revert', 'Revert'), ('mark_cured', 'Mark Cured'), ('reactivate', 'Reactivate')], max_length=20)),
                ('actor_role', models.CharField(blank=True, default='', max_length=20)),
                ('reason', models.TextField(blank=True, default='')),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('actor_user', models.ForeignKey(blank=True, help_text='User who performed the transition (null for system actions)', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='approval_actions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Approval Audit Log',
                'verbose_name_plural': 'Approval Audit Logs',
                'db_table': 'approval_audit_log',
                'ordering': ['-created_at'],
            },
        ),
        migrations.AddIndex(
            model_name='invitetoken',
            index=models.Index(fields=['role'], name='idx_invite_role'),
        ),
        migrations.AddIndex(
            model_name='invitetoken',
            index=models.Index(fields=['expires_at'], name='idx_invite_expires'),
        ),
        migrations.AddIndex(
            model_name='invitetoken',
            index=models.Index(fields=['consumed_at'], name='idx_invite_consumed'),
        ),
        migrations.AddIndex(
            model_name='approvalauditlog',
            index=models.Index(fields=['entity_type', 'entity_id'], name='idx_approval_audit_entity'),
        ),
        migrations.AddIndex(
            model_name='approvalauditlog',
            index=models.Index(fields=['created_at'], name='idx_approval_audit_created'),
        ),
        migrations.AddIndex(
            model_name='approvalauditlog',
            index=models.Index(fields=['actor_user'], name='idx_approval_audit_actor'),
        ),
    ]
