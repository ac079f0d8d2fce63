from django.contrib.auth import get_user_model

from accounts.models import Role


def make_user(username, *role_names, **extra):
    User = get_user_model()
    user = User.objects.create_user(username=username, password='pass1234', **extra)
    for name in role_names:
        role, _ = Role.objects.get_or_create(name=name)
        user.roles.add(role)
    return user
