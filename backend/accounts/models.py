from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.core.exceptions import ValidationError
from django.db import models


class User(AbstractUser):
    """
    Base user model.
    Admins, teachers and students are all users.
    What they may do is decided by their roles.
    """
    roles = models.ManyToManyField(
        'Role',
        through='UserRole',
        related_name='users'
    )

    def __str__(self):
        return self.username

    def role_names(self):
        return {r.name.upper() for r in self.roles.all()}

    def has_role(self, *names) -> bool:
        wanted = {n.upper() for n in names}
        return bool(self.role_names() & wanted)


class Role(models.Model):
    """
    Logical role (ADMIN, TEACHER, STUDENT)
    """
    ADMIN = 'ADMIN'
    TEACHER = 'TEACHER'
    STUDENT = 'STUDENT'

    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True)

    def __str__(self):
        return self.name


STAFF_ROLES = {Role.ADMIN, Role.TEACHER}


def validate_roles_for_user(user, roles):
    """Reject role sets that mix STUDENT with a staff role.

    `roles` is the complete set the user would hold after the change.
    Raises `ValidationError` on invalid assignment.
    """
    names = {getattr(r, 'name', str(r)).upper() for r in roles}
    if Role.STUDENT in names and names & STAFF_ROLES:
        raise ValidationError(
            f'User {user} cannot be both STUDENT and {", ".join(sorted(names & STAFF_ROLES))}.'
        )


class UserRole(models.Model):
    """
    Assigns a role to a user.
    A staff user can hold several roles (TEACHER + ADMIN).
    """
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='user_roles'
    )
    role = models.ForeignKey(
        Role,
        on_delete=models.CASCADE,
        related_name='user_roles'
    )

    class Meta:
        unique_together = ('user', 'role')

    def __str__(self):
        return f"{self.user.username} -> {self.role.name}"

    def save(self, *args, **kwargs):
        existing = list(Role.objects.filter(user_roles__user=self.user).exclude(pk=self.role_id))
        validate_roles_for_user(self.user, existing + [self.role])
        super().save(*args, **kwargs)
