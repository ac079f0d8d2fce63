from django.db import migrations

ROLES = [
    ('ADMIN', 'Manages tests, schedules, archives and student promotions'),
    ('TEACHER', 'Authors tests and runs their lifecycle up to completion'),
    ('STUDENT', 'Takes tests inside an assigned batch window'),
]


def create_roles(apps, schema_editor):
    Role = apps.get_model('accounts', 'Role')
    for name, desc in ROLES:
        Role.objects.get_or_create(name=name, defaults={'description': desc})


def remove_roles(apps, schema_editor):
    Role = apps.get_model('accounts', 'Role')
    Role.objects.filter(name__in=[name for name, _ in ROLES]).delete()


class Migration(migrations.Migration):
    dependencies = [
        ('accounts', '0001_initial'),
    ]

    operations = [
        migrations.RunPython(create_roles, remove_roles),
    ]
