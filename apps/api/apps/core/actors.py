"""
The authenticated actor, passed explicitly into every service operation.

Views build it from request.user; services never read request or
thread-local state to decide who is acting.
"""
from dataclasses import dataclass, field
from typing import Optional


ROLE_PRIORITY = ('admin', 'doctor', 'patient')


@dataclass(frozen=True)
class Actor:
    """Who is performing an operation: user id plus the effective role."""
    actor_id: Optional[str]
    actor_role: Optional[str]
    user: Optional[object] = field(default=None, compare=False, repr=False)

    @property
    def is_admin(self) -> bool:
        return self.actor_role == 'admin'

    @property
    def is_doctor(self) -> bool:
        return self.actor_role == 'doctor'

    @property
    def is_patient(self) -> bool:
        return self.actor_role == 'patient'

    @classmethod
    def from_user(cls, user) -> 'Actor':
        """
        Resolve the actor for an authenticated user.

        A user holding several roles acts with the most privileged one
        (admin > doctor > patient). Superusers always act as admin.
        """
        if user is None or not user.is_authenticated:
            return cls(actor_id=None, actor_role=None)

        if user.is_superuser:
            return cls(actor_id=str(user.id), actor_role='admin', user=user)

        roles = set(user.user_roles.values_list('role__name', flat=True))
        role = next((r for r in ROLE_PRIORITY if r in roles), None)
        return cls(actor_id=str(user.id), actor_role=role, user=user)

    @classmethod
    def system(cls) -> 'Actor':
        """Actor for management commands and scheduled jobs."""
        return cls(actor_id=None, actor_role='admin')
