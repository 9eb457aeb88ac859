from django.db import models


class TrackedUser(models.Model):
    handle = models.CharField(max_length=64, unique=True)

    # Profile, refreshed from user.info
    rating = models.IntegerField(null=True, blank=True)
    rank = models.CharField(max_length=50, blank=True, default='')
    avatar_url = models.URLField(max_length=500, blank=True, default='')

    enabled = models.BooleanField(default=True, help_text="Disabled users are neither listed nor polled.")
    hidden = models.BooleanField(default=False, help_text="Hidden users are polled but not listed.")

    # Ingestion cursor and streak cache
    last_submission_time = models.DateTimeField(null=True, blank=True)
    current_streak = models.PositiveIntegerField(default=0)
    last_streak_date = models.DateField(null=True, blank=True)
    last_updated = models.DateTimeField(null=True, blank=True)

    # Contest history from user.rating, enriched with the contest problems
    rating_history = models.JSONField(default=list, blank=True)
    rating_history_updated = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['handle']
        verbose_name = "Tracked user"
        verbose_name_plural = "Tracked users"

    def __str__(self):
        return self.handle


class Submission(models.Model):
    user = models.ForeignKey(TrackedUser, on_delete=models.CASCADE, related_name='submissions')
    contest_id = models.IntegerField()
    problem_index = models.CharField(max_length=10)  # Ex: 'A', 'B1'
    problem_name = models.CharField(max_length=200, blank=True, default='')
    rating = models.IntegerField(null=True, blank=True)
    tags = models.JSONField(default=list, blank=True)
    submission_time = models.DateTimeField()

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-submission_time']
        indexes = [
            models.Index(fields=['user', 'submission_time'], name='tracker_sub_user_id_8f0b6a_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'contest_id', 'problem_index'],
                name='tracker_submission_user_problem_uniq',
            ),
        ]

    def __str__(self):
        return f"{self.user.handle} - {self.contest_id}{self.problem_index}"


class UserStats(models.Model):
    user = models.OneToOneField(TrackedUser, on_delete=models.CASCADE, related_name='stats')
    total_score = models.PositiveIntegerField(default=0)
    count_no_rating = models.PositiveIntegerField(default=0)
    count_800_900 = models.PositiveIntegerField(default=0)
    count_1000 = models.PositiveIntegerField(default=0)
    count_1100 = models.PositiveIntegerField(default=0)
    count_1200_plus = models.PositiveIntegerField(default=0)
    last_calculated = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "User stats"
        verbose_name_plural = "User stats"

    def __str__(self):
        return f"{self.user.handle} - {self.total_score} pts"


class Contest(models.Model):
    contest_id = models.IntegerField(unique=True)
    name = models.CharField(max_length=255)
    contest_type = models.CharField(max_length=20, blank=True, default='')
    phase = models.CharField(max_length=30, blank=True, default='')
    frozen = models.BooleanField(default=False)
    duration_seconds = models.IntegerField(null=True, blank=True)
    start_time = models.DateTimeField(null=True, blank=True)
    problems = models.JSONField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-start_time']
        indexes = [
            models.Index(fields=['phase', 'start_time'], name='tracker_con_phase_2d1c3e_idx'),
        ]

    def __str__(self):
        return f"{self.contest_id} - {self.name}"


class SystemMetadata(models.Model):
    key = models.CharField(max_length=100, unique=True)
    value = models.TextField(blank=True, default='')
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "System metadata"
        verbose_name_plural = "System metadata"

    def __str__(self):
        return f"{self.key}={self.value}"
