"""
Tests for the bootstrap admin and invite purge management commands.
"""
from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.utils import timezone

from apps.authz.models import User
from apps.core.actors import Actor
from apps.onboarding import invites
from apps.onboarding.models import InviteToken


@pytest.mark.django_db
class TestEnsureSuperuser:

    def test_creates_admin_once(self, monkeypatch):
        monkeypatch.setenv('DJANGO_SUPERUSER_EMAIL', 'root@clinic.test')
        monkeypatch.setenv('DJANGO_SUPERUSER_PASSWORD', 'bootstrap-pass')

        call_command('ensure_superuser', stdout=StringIO())
        out = StringIO()
        call_command('ensure_superuser', stdout=out)

        user = User.objects.get(email='root@clinic.test')
        assert user.is_superuser
        assert user.check_password('bootstrap-pass')
        assert Actor.from_user(user).is_admin
        assert user.user_roles.count() == 1
        assert 'already exists' in out.getvalue()


@pytest.mark.django_db
class TestPurgeExpiredInvites:

    def test_dry_run_then_delete(self, admin_actor):
        stale = invites.issue_invite(admin_actor, 'DOCTOR')
        InviteToken.objects.filter(pk=stale.pk).update(expires_at=timezone.now() - timedelta(days=10))
        recent = invites.issue_invite(admin_actor, 'DOCTOR')
        InviteToken.objects.filter(pk=recent.pk).update(expires_at=timezone.now() - timedelta(days=1))

        out = StringIO()
        call_command('purge_expired_invites', '--before-days', '5', stdout=out)
        assert '1 expired invite(s) would be deleted' in out.getvalue()
        assert InviteToken.objects.count() == 2

        call_command('purge_expired_invites', '--before-days', '5', '--delete', stdout=StringIO())
        assert list(InviteToken.objects.values_list('id', flat=True)) == [recent.id]
