import datetime
import uuid

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import elections.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Election',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('title', models.CharField(help_text='Election title', max_length=200)),
                ('date', models.DateField(help_text='Main election day')),
                ('start_date', models.DateField(blank=True, help_text='First voting day (defaults to date)', null=True)),
                ('end_date', models.DateField(blank=True, help_text='Last voting day (defaults to date)', null=True)),
                ('start_time', models.TimeField(default=datetime.time(8, 0))),
                ('end_time', models.TimeField(default=datetime.time(17, 0))),
                ('is_current', models.BooleanField(default=False)),
                ('is_active', models.BooleanField(default=False)),
                ('status', models.CharField(choices=[('not-started', 'Not started'), ('active', 'Active'), ('ended', 'Ended')], default='not-started', max_length=20)),
                ('results_published', models.BooleanField(default=False)),
                ('priority', models.IntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['priority', '-created_at'],
                'indexes': [models.Index(fields=['is_current'], name='elections_e_is_curr_5d3c1a_idx')],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('is_current', True)), fields=('is_current',), name='single_current_election'),
                    models.CheckConstraint(condition=models.Q(('is_active', False), ('status', 'active'), _connector='OR'), name='active_election_has_active_status'),
                    models.CheckConstraint(condition=models.Q(('is_active', True), models.Q(('status', 'active'), _negated=True), _connector='OR'), name='inactive_election_not_active_status'),
                    models.CheckConstraint(condition=models.Q(('is_current', True), ('is_active', False), _connector='OR'), name='only_current_election_active'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Setting',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('is_active', models.BooleanField(default=False)),
                ('election_title', models.CharField(default='Student Council Election 2025', max_length=200)),
                ('voting_start_date', models.DateField(default=elections.models.default_voting_start_date)),
                ('voting_end_date', models.DateField(default=elections.models.default_voting_end_date)),
                ('voting_start_time', models.TimeField(default=datetime.time(8, 0))),
                ('voting_end_time', models.TimeField(default=datetime.time(17, 0))),
                ('results_published', models.BooleanField(default=False)),
                ('allow_voter_registration', models.BooleanField(default=False)),
                ('require_email_verification', models.BooleanField(default=True)),
                ('max_votes_per_voter', models.PositiveIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1)])),
                ('system_name', models.CharField(default='Peki Senior High School Elections', max_length=200)),
                ('system_logo', models.CharField(blank=True, default='', max_length=500)),
                ('company_name', models.CharField(blank=True, default='', max_length=200)),
                ('company_logo', models.CharField(blank=True, default='', max_length=500)),
                ('school_name', models.CharField(blank=True, default='', max_length=200)),
                ('school_logo', models.CharField(blank=True, default='', max_length=500)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name='Position',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('title', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True, default='')),
                ('priority', models.IntegerField(default=0)),
                ('order', models.IntegerField(default=0)),
                ('max_candidates', models.PositiveIntegerField(default=1)),
                ('max_selections', models.PositiveIntegerField(default=1)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('election', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='positions', to='elections.election')),
            ],
            options={
                'ordering': ['priority', 'order', 'title'],
                'indexes': [models.Index(fields=['election', 'is_active'], name='elections_p_electio_8b1f2e_idx')],
                'constraints': [models.UniqueConstraint(fields=('election', 'title'), name='unique_position_title_per_election')],
            },
        ),
        migrations.CreateModel(
            name='Candidate',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=200)),
                ('image', models.CharField(blank=True, default='', max_length=500)),
                ('biography', models.TextField(blank=True, default='')),
                ('year', models.CharField(blank=True, default='', max_length=50)),
                ('class_name', models.CharField(blank=True, default='', max_length=100)),
                ('house', models.CharField(blank=True, default='', max_length=100)),
                ('is_active', models.BooleanField(default=True)),
                ('voter_category', models.CharField(choices=[('all', 'All voters'), ('class', 'By class'), ('year', 'By year'), ('house', 'By house')], default='all', max_length=10)),
                ('voter_category_values', models.JSONField(blank=True, default=list)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('election', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='candidates', to='elections.election')),
                ('position', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='candidates', to='elections.position')),
            ],
            options={
                'ordering': ['name'],
                'indexes': [models.Index(fields=['position', 'election', 'is_active'], name='elections_c_positio_4e7a9d_idx')],
            },
        ),
        migrations.CreateModel(
            name='Voter',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=200)),
                ('voter_id', models.CharField(max_length=50, unique=True)),
                ('student_id', models.CharField(db_index=True, max_length=50)),
                ('gender', models.CharField(blank=True, choices=[('Male', 'Male'), ('Female', 'Female')], default='', max_length=10)),
                ('class_name', models.CharField(blank=True, default='', max_length=100)),
                ('year', models.CharField(blank=True, default='', max_length=50)),
                ('house', models.CharField(blank=True, default='', max_length=100)),
                ('vote_count', models.PositiveIntegerField(default=0)),
                ('has_voted', models.BooleanField(default=False)),
                ('voted_at', models.DateTimeField(blank=True, null=True)),
                ('vote_token', models.CharField(blank=True, max_length=32, null=True)),
                ('vote_tokens', models.JSONField(blank=True, default=list)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('election', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='voters', to='elections.election')),
            ],
            options={
                'ordering': ['name'],
                'indexes': [models.Index(fields=['voter_id', 'election'], name='elections_v_voter_i_2c6b0f_idx')],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(models.Q(('has_voted', True), ('vote_count__gt', 0)), models.Q(('has_voted', False), ('vote_count', 0)), _connector='OR'), name='voter_has_voted_matches_count'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Ballot',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('position_title', models.CharField(max_length=200)),
                ('is_abstention', models.BooleanField(default=False)),
                ('timestamp', models.DateTimeField(default=django.utils.timezone.now)),
                ('voting_session', models.CharField(max_length=64)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('candidate', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='ballots', to='elections.candidate')),
                ('election', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='ballots', to='elections.election')),
                ('position', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='ballots', to='elections.position')),
                ('voter', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='ballots', to='elections.voter')),
            ],
            options={
                'verbose_name': 'vote',
                'ordering': ['-timestamp'],
                'indexes': [
                    models.Index(fields=['voter', 'election'], name='elections_b_voter_i_7a1c3e_idx'),
                    models.Index(fields=['election', 'position_title'], name='elections_b_electio_9d4f21_idx'),
                    models.Index(fields=['voting_session'], name='elections_b_voting__3b8e5a_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('voter', 'voting_session', 'position_title'), name='one_ballot_per_position_per_session'),
                    models.CheckConstraint(condition=models.Q(('is_abstention', False), ('candidate__isnull', True), _connector='OR'), name='abstention_has_no_candidate'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Year',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=100)),
                ('description', models.CharField(blank=True, default='', max_length=500)),
                ('active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('election', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to='elections.election')),
            ],
            options={
                'ordering': ['name'],
                'abstract': False,
                'constraints': [models.UniqueConstraint(fields=('election', 'name'), name='unique_year_per_election')],
            },
        ),
        migrations.CreateModel(
            name='SchoolClass',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=100)),
                ('description', models.CharField(blank=True, default='', max_length=500)),
                ('active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('election', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to='elections.election')),
            ],
            options={
                'verbose_name': 'class',
                'verbose_name_plural': 'classes',
                'ordering': ['name'],
                'abstract': False,
                'constraints': [models.UniqueConstraint(fields=('election', 'name'), name='unique_class_per_election')],
            },
        ),
        migrations.CreateModel(
            name='House',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=100)),
                ('description', models.CharField(blank=True, default='', max_length=500)),
                ('active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('election', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to='elections.election')),
            ],
            options={
                'ordering': ['name'],
                'abstract': False,
                'constraints': [models.UniqueConstraint(fields=('election', 'name'), name='unique_house_per_election')],
            },
        ),
        migrations.CreateModel(
            name='ActivityLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(db_index=True, max_length=100)),
                ('entity', models.CharField(blank=True, default='', max_length=50)),
                ('entity_id', models.CharField(blank=True, default='', max_length=64)),
                ('details', models.JSONField(blank=True, default=dict)),
                ('ip_address', models.GenericIPAddressField(blank=True, null=True)),
                ('timestamp', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('election', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to='elections.election')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-timestamp'],
                'indexes': [
                    models.Index(fields=['action', '-timestamp'], name='elections_a_action_6f2d8c_idx'),
                    models.Index(fields=['entity', 'action'], name='elections_a_entity_1e9b7d_idx'),
                ],
            },
        ),
    ]
