import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='SchoolClass',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=50, unique=True, validators=[django.core.validators.RegexValidator('^[A-Z0-9\\s\\-]+$', 'Class name can only contain letters, numbers, spaces, and hyphens')])),
                ('level', models.CharField(choices=[('PRIMARY', 'Primary'), ('JUNIOR_SECONDARY', 'Junior secondary'), ('SENIOR_SECONDARY', 'Senior secondary'), ('COLLEGE', 'College')], db_index=True, max_length=20)),
                ('academic_year', models.CharField(max_length=9, validators=[django.core.validators.RegexValidator('^\\d{4}/\\d{4}$', 'Academic year must be in format YYYY/YYYY')])),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'verbose_name': 'Class',
                'verbose_name_plural': 'Classes',
                'ordering': ('level', 'name'),
            },
        ),
        migrations.CreateModel(
            name='RosterEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('version', models.PositiveIntegerField(default=1)),
                ('updated_at', models.DateTimeField()),
                ('school_class', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='roster_entries', to='academics.schoolclass')),
                ('student', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='roster_entry', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Roster entry',
                'verbose_name_plural': 'Roster',
            },
        ),
        migrations.CreateModel(
            name='PromotionBatch',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('session', models.CharField(max_length=32)),
                ('term', models.CharField(max_length=32)),
                ('promotion_date', models.DateTimeField()),
                ('student_count', models.PositiveIntegerField()),
                ('from_class', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='promotion_batches_out', to='academics.schoolclass')),
                ('to_class', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='promotion_batches_in', to='academics.schoolclass')),
                ('promoted_by', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='promotion_batches', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name_plural': 'Promotion batches',
                'ordering': ('id',),
            },
        ),
        migrations.CreateModel(
            name='PromotionRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('session', models.CharField(max_length=32)),
                ('term', models.CharField(max_length=32)),
                ('promotion_date', models.DateTimeField()),
                ('rolled_back', models.BooleanField(default=False)),
                ('rollback_date', models.DateTimeField(blank=True, null=True)),
                ('batch', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='records', to='academics.promotionbatch')),
                ('new_class', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='+', to='academics.schoolclass')),
                ('previous_class', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='+', to='academics.schoolclass')),
                ('promoted_by', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='promotions_made', to=settings.AUTH_USER_MODEL)),
                ('rolled_back_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='promotions_rolled_back', to=settings.AUTH_USER_MODEL)),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='promotion_records', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ('id',),
                'indexes': [
                    models.Index(fields=['session', 'term', 'promoted_by', 'promotion_date'], name='promotion_tuple_idx'),
                    models.Index(fields=['student', 'id'], name='promotion_student_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(('rolled_back', False), ('rollback_date__isnull', True), ('rolled_back_by__isnull', True)),
                            models.Q(('rolled_back', True), ('rollback_date__isnull', False), ('rolled_back_by__isnull', False)),
                            _connector='OR',
                        ),
                        name='promotionrecord_rollback_fields_consistent',
                    ),
                ],
            },
        ),
    ]
