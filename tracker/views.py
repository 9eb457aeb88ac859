from datetime import datetime, time

from django.db.models import IntegerField, Value
from django.db.models.functions import Coalesce
from django.http import Http404, JsonResponse
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime
from django.views.decorators.http import require_GET

from .models import TrackedUser
from .services import metadata
from .services.contests import upcoming_contests
from .services.scoring import BANDS
from .services.stats import detailed_stats, filter_submissions
from .services.streaks import get_streak_timezone

MAX_PAGE_SIZE = 500


def _iso(value):
    return value.isoformat() if value else None


def _stats_payload(user):
    stats = getattr(user, 'stats', None)
    return {
        'total_score': stats.total_score if stats else 0,
        'band_counts': {
            band: getattr(stats, f'count_{band}', 0) if stats else 0
            for band in BANDS
        },
    }


def _user_payload(user):
    return {
        'handle': user.handle,
        'rating': user.rating,
        'rank': user.rank,
        'avatar_url': user.avatar_url,
        'current_streak': user.current_streak,
        'last_streak_date': _iso(user.last_streak_date),
        'last_submission_time': _iso(user.last_submission_time),
        'last_updated': _iso(user.last_updated),
        **_stats_payload(user),
    }


def _submission_payload(sub):
    return {
        'contest_id': sub.contest_id,
        'problem_index': sub.problem_index,
        'problem_name': sub.problem_name,
        'rating': sub.rating,
        'tags': sub.tags,
        'submission_time': _iso(sub.submission_time),
    }


def _public_users():
    return TrackedUser.objects.filter(enabled=True, hidden=False).select_related('stats')


def _get_public_user(handle):
    user = _public_users().filter(handle__iexact=handle).first()
    if user is None:
        raise Http404('User not tracked')
    return user


@require_GET
def user_list(request):
    users = _public_users().annotate(
        score=Coalesce('stats__total_score', Value(0), output_field=IntegerField()),
    ).order_by('-score', 'handle')
    return JsonResponse({
        'last_tracker_run': _iso(metadata.get_run(metadata.LAST_TRACKER_RUN)),
        'users': [_user_payload(user) for user in users],
    })


@require_GET
def user_detail(request, handle):
    user = _get_public_user(handle)
    latest = user.submissions.order_by('-submission_time')[:10]
    payload = _user_payload(user)
    payload['latest_submissions'] = [_submission_payload(sub) for sub in latest]
    payload['last_tracker_run'] = _iso(metadata.get_run(metadata.LAST_TRACKER_RUN))
    return JsonResponse(payload)


@require_GET
def contest_list(request):
    return JsonResponse({
        'last_contest_sync': _iso(metadata.get_run(metadata.LAST_CONTEST_SYNC)),
        'contests': [
            {
                'contest_id': contest.contest_id,
                'name': contest.name,
                'type': contest.contest_type,
                'start_time': _iso(contest.start_time),
                'duration_seconds': contest.duration_seconds,
            }
            for contest in upcoming_contests()
        ],
    })


class BadParameter(ValueError):
    pass


def _int_param(request, name, default=None, minimum=None, maximum=None):
    raw = request.GET.get(name, '')
    if raw == '':
        return default
    try:
        value = int(raw)
    except ValueError:
        raise BadParameter(f'{name} must be an integer')
    if minimum is not None and value < minimum:
        raise BadParameter(f'{name} must be at least {minimum}')
    if maximum is not None:
        value = min(value, maximum)
    return value


def _datetime_param(request, name, end_of_day=False):
    # A bare date covers the whole local day.
    raw = request.GET.get(name, '')
    if raw == '':
        return None
    try:
        day = parse_date(raw)
        if day is not None:
            value = datetime.combine(day, time.max if end_of_day else time.min)
        else:
            value = parse_datetime(raw)
        if value is None:
            raise ValueError(raw)
    except ValueError:
        raise BadParameter(f'{name} must be an ISO date or datetime')
    if timezone.is_naive(value):
        value = timezone.make_aware(value, get_streak_timezone())
    return value


@require_GET
def user_stats(request, handle):
    user = _get_public_user(handle)
    return JsonResponse({
        'handle': user.handle,
        'general': _stats_payload(user) if getattr(user, 'stats', None) else None,
        **detailed_stats(user),
    })


@require_GET
def user_submissions(request, handle):
    user = _get_public_user(handle)
    try:
        limit = _int_param(request, 'limit', default=100, minimum=1, maximum=MAX_PAGE_SIZE)
        offset = _int_param(request, 'offset', default=0, minimum=0)
        queryset = filter_submissions(
            user,
            rating_min=_int_param(request, 'rating_min'),
            rating_max=_int_param(request, 'rating_max'),
            date_from=_datetime_param(request, 'date_from'),
            date_to=_datetime_param(request, 'date_to', end_of_day=True),
            no_rating=request.GET.get('no_rating') == 'true',
            sort=request.GET.get('sort', 'submission_time'),
            order=request.GET.get('order', 'desc'),
        )
    except BadParameter as exc:
        return JsonResponse({'error': str(exc)}, status=400)

    total = queryset.count()
    page = [_submission_payload(sub) for sub in queryset[offset:offset + limit]]
    return JsonResponse({
        'handle': user.handle,
        'submissions': page,
        'pagination': {
            'total': total,
            'limit': limit,
            'offset': offset,
            'has_more': offset + len(page) < total,
        },
    })


@require_GET
def user_rating_history(request, handle):
    user = _get_public_user(handle)
    return JsonResponse({
        'handle': user.handle,
        'updated': _iso(user.rating_history_updated),
        'last_rating_sync': _iso(metadata.get_run(metadata.LAST_RATING_SYNC)),
        'contests': user.rating_history,
    })
