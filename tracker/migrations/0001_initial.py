import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Contest',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('contest_id', models.IntegerField(unique=True)),
                ('name', models.CharField(max_length=255)),
                ('contest_type', models.CharField(blank=True, default='', max_length=20)),
                ('phase', models.CharField(blank=True, default='', max_length=30)),
                ('frozen', models.BooleanField(default=False)),
                ('duration_seconds', models.IntegerField(blank=True, null=True)),
                ('start_time', models.DateTimeField(blank=True, null=True)),
                ('problems', models.JSONField(blank=True, null=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['-start_time'],
                'indexes': [models.Index(fields=['phase', 'start_time'], name='tracker_con_phase_2d1c3e_idx')],
            },
        ),
        migrations.CreateModel(
            name='SystemMetadata',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('key', models.CharField(max_length=100, unique=True)),
                ('value', models.TextField(blank=True, default='')),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'System metadata',
                'verbose_name_plural': 'System metadata',
            },
        ),
        migrations.CreateModel(
            name='TrackedUser',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('handle', models.CharField(max_length=64, unique=True)),
                ('rating', models.IntegerField(blank=True, null=True)),
                ('rank', models.CharField(blank=True, default='', max_length=50)),
                ('avatar_url', models.URLField(blank=True, default='', max_length=500)),
                ('enabled', models.BooleanField(default=True, help_text='Disabled users are neither listed nor polled.')),
                ('hidden', models.BooleanField(default=False, help_text='Hidden users are polled but not listed.')),
                ('last_submission_time', models.DateTimeField(blank=True, null=True)),
                ('current_streak', models.PositiveIntegerField(default=0)),
                ('last_streak_date', models.DateField(blank=True, null=True)),
                ('last_updated', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'verbose_name': 'Tracked user',
                'verbose_name_plural': 'Tracked users',
                'ordering': ['handle'],
            },
        ),
        migrations.CreateModel(
            name='Submission',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('contest_id', models.IntegerField()),
                ('problem_index', models.CharField(max_length=10)),
                ('problem_name', models.CharField(blank=True, default='', max_length=200)),
                ('rating', models.IntegerField(blank=True, null=True)),
                ('tags', models.JSONField(blank=True, default=list)),
                ('submission_time', models.DateTimeField()),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='submissions', to='tracker.trackeduser')),
            ],
            options={
                'ordering': ['-submission_time'],
                'indexes': [models.Index(fields=['user', 'submission_time'], name='tracker_sub_user_id_8f0b6a_idx')],
                'constraints': [
                    models.UniqueConstraint(
                        fields=('user', 'contest_id', 'problem_index'),
                        name='tracker_submission_user_problem_uniq',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='UserStats',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('total_score', models.PositiveIntegerField(default=0)),
                ('count_no_rating', models.PositiveIntegerField(default=0)),
                ('count_800_900', models.PositiveIntegerField(default=0)),
                ('count_1000', models.PositiveIntegerField(default=0)),
                ('count_1100', models.PositiveIntegerField(default=0)),
                ('count_1200_plus', models.PositiveIntegerField(default=0)),
                ('last_calculated', models.DateTimeField(auto_now=True)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='stats', to='tracker.trackeduser')),
            ],
            options={
                'verbose_name': 'User stats',
                'verbose_name_plural': 'User stats',
            },
        ),
    ]
