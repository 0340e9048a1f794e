"""
Management command to ensure the bootstrap admin exists (for Docker startup).

Doctors can only register through an invite issued by an admin, so a fresh
deployment needs one admin account holding the admin role.
"""
import os

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand

from apps.authz.models import RoleChoices, assign_role


class Command(BaseCommand):
    help = 'Create the bootstrap admin if it does not exist and give it the admin role'

    def handle(self, *args, **options):
        User = get_user_model()

        email = os.environ.get('DJANGO_SUPERUSER_EMAIL', 'admin@example.com')
        password = os.environ.get('DJANGO_SUPERUSER_PASSWORD', 'admin123dev')

        user = User.objects.filter(email=email).first()
        if user is None:
            user = User.objects.create_superuser(email=email, password=password)
            self.stdout.write(
                self.style.SUCCESS(f'Superuser "{email}" created successfully')
            )
        else:
            self.stdout.write(
                self.style.WARNING(f'Superuser "{email}" already exists')
            )

        assign_role(user, RoleChoices.ADMIN)
        self.stdout.write(self.style.SUCCESS(f'Role "{RoleChoices.ADMIN}" assigned to "{email}"'))
