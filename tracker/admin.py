from django import forms
from django.contrib import admin, messages

from .exceptions import HandleNotFound, TrackerError
from .models import Contest, Submission, SystemMetadata, TrackedUser, UserStats
from .services.codeforces import CodeforcesClient
from .services.ingestion import track_user

admin.site.site_header = "CF Streak Administration"
admin.site.site_title = "CF Streak Admin"
admin.site.index_title = "Tracker"


class SuperuserOnlyAdmin(admin.ModelAdmin):
    """
    Hides derived/technical tables from regular staff.
    """

    def has_module_permission(self, request):
        return bool(request.user and request.user.is_superuser)

    def has_view_permission(self, request, obj=None):
        return bool(request.user and request.user.is_superuser)

    def has_add_permission(self, request):
        return bool(request.user and request.user.is_superuser)

    def has_change_permission(self, request, obj=None):
        return bool(request.user and request.user.is_superuser)

    def has_delete_permission(self, request, obj=None):
        return bool(request.user and request.user.is_superuser)


class TrackedUserForm(forms.ModelForm):
    class Meta:
        model = TrackedUser
        fields = ('handle', 'enabled', 'hidden')

    def clean_handle(self):
        handle = self.cleaned_data['handle'].strip()
        if self.instance.pk and self.instance.handle == handle:
            return handle
        # New users and renames must exist on Codeforces.
        try:
            info = CodeforcesClient.from_settings().get_user_info(handle)
        except HandleNotFound:
            raise forms.ValidationError(f"User '{handle}' was not found on Codeforces.")
        except TrackerError as exc:
            raise forms.ValidationError(f"Could not verify '{handle}': {exc}")
        return info.get('handle') or handle


class UserStatsInline(admin.StackedInline):
    model = UserStats
    can_delete = False
    extra = 0
    readonly_fields = (
        'total_score',
        'count_no_rating',
        'count_800_900',
        'count_1000',
        'count_1100',
        'count_1200_plus',
        'last_calculated',
    )


@admin.register(TrackedUser)
class TrackedUserAdmin(admin.ModelAdmin):
    form = TrackedUserForm
    list_display = (
        'handle',
        'rating',
        'rank',
        'current_streak',
        'last_streak_date',
        'enabled',
        'hidden',
        'last_updated',
    )
    list_filter = ('enabled', 'hidden', 'rank')
    search_fields = ('handle',)
    readonly_fields = (
        'rating',
        'rank',
        'avatar_url',
        'last_submission_time',
        'current_streak',
        'last_streak_date',
        'last_updated',
        'rating_history',
        'rating_history_updated',
        'created_at',
    )
    inlines = [UserStatsInline]
    actions = ['enable_users', 'disable_users', 'track_now']

    @admin.action(description="Enable selected users")
    def enable_users(self, request, queryset):
        updated = queryset.update(enabled=True)
        self.message_user(request, f"{updated} user(s) enabled.", level=messages.SUCCESS)

    @admin.action(description="Disable selected users")
    def disable_users(self, request, queryset):
        updated = queryset.update(enabled=False)
        self.message_user(request, f"{updated} user(s) disabled.", level=messages.SUCCESS)

    @admin.action(description="Track selected users now")
    def track_now(self, request, queryset):
        try:
            client = CodeforcesClient.from_settings()
        except TrackerError as exc:
            self.message_user(request, str(exc), level=messages.ERROR)
            return
        for user in queryset.order_by('handle'):
            result = track_user(user.handle, client)
            if result.error:
                self.message_user(request, f"{result.handle}: {result.error}", level=messages.ERROR)
            elif result.disabled:
                self.message_user(request, f"{result.handle}: not found, disabled", level=messages.WARNING)
            else:
                self.message_user(request, f"{result.handle}: {result.new_submissions} new")


@admin.register(Submission)
class SubmissionAdmin(admin.ModelAdmin):
    list_display = ('user', 'contest_id', 'problem_index', 'problem_name', 'rating', 'submission_time')
    list_filter = ('rating',)
    search_fields = ('user__handle', 'problem_name')
    ordering = ('-submission_time',)
    readonly_fields = ('user', 'contest_id', 'problem_index', 'problem_name', 'rating', 'tags', 'submission_time')


@admin.register(Contest)
class ContestAdmin(admin.ModelAdmin):
    list_display = ('contest_id', 'name', 'phase', 'start_time', 'duration_seconds')
    list_filter = ('phase', 'contest_type')
    search_fields = ('contest_id', 'name')
    ordering = ('-start_time',)


@admin.register(SystemMetadata)
class SystemMetadataAdmin(SuperuserOnlyAdmin):
    list_display = ('key', 'value', 'updated_at')
    ordering = ('key',)
