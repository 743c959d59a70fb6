"""
Data access for submitted control columns.

Every read and write of ``Submission`` rows goes through this module: the
JSON endpoints and the authoring workflow call these functions rather than
touching the ORM directly.
"""

import logging
import math
import re
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import List, Optional

from django.conf import settings
from django.db.models import Count, Q
from django.utils import timezone

from .models import DEFAULT_CONTROL_NAME, Submission

logger = logging.getLogger(__name__)

INDIVIDUAL_SESSION = 'individual'
DELETE_ALL_CONFIRMATION = 'DELETE_ALL_SUBMISSIONS_CONFIRMED'

DEFAULT_PAGE_LIMIT = 15
MAX_PAGE_LIMIT = 100
TEST_QUESTION_ID_FLOOR = 888

# Largest value a database INTEGER column holds.
MAX_DB_INT = 2 ** 63 - 1


class SubmissionValidationError(ValueError):
    pass


def _coerce_question_id(value) -> int:
    if value is None or value == '':
        raise SubmissionValidationError('Question ID is required')
    if isinstance(value, bool):
        raise SubmissionValidationError('Question ID must be a number')
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, str) and re.fullmatch(r'-?[0-9]+', value.strip()):
        value = int(value.strip())
    if not isinstance(value, int):
        raise SubmissionValidationError('Question ID must be a number')
    if abs(value) > MAX_DB_INT:
        raise SubmissionValidationError('Question ID is out of range')
    return value


def _optional_str(data, key, label):
    value = data.get(key)
    if value is None:
        return ''
    if not isinstance(value, str):
        raise SubmissionValidationError(f'{label} must be a string')
    return value.strip()


def create_submission(data) -> Submission:
    """
    Validate a request body and store it as one submission.

    ``controlName`` falls back to ``NEW CONTROL`` and a missing or blank
    ``sessionId`` is stored as NULL.
    """
    if not isinstance(data, dict):
        raise SubmissionValidationError('Request body must be a JSON object')

    question_id = _coerce_question_id(data.get('questionId'))

    selections = data.get('newControlSelections')
    if selections is None or not isinstance(selections, list):
        raise SubmissionValidationError('New control selections are required and must be an array')
    if not all(isinstance(cell, dict) for cell in selections):
        raise SubmissionValidationError('Each control selection must be an object')

    control_name = _optional_str(data, 'controlName', 'Control name') or DEFAULT_CONTROL_NAME
    session_id = _optional_str(data, 'sessionId', 'Session ID') or None

    submission = Submission.objects.create(
        question_id=question_id,
        new_control_selections=selections,
        control_name=control_name,
        session_id=session_id,
    )
    logger.info("[Submissions] Created %s (question=%s, session=%s)", submission.pk, question_id, session_id)
    return submission


def session_filter(session_id: str) -> Q:
    """
    Match rows for one session token.

    The individual token also matches rows without a session, which is
    how submissions from before group sessions were stored.
    """
    session_id = session_id.strip()
    if session_id == INDIVIDUAL_SESSION:
        return Q(session_id=INDIVIDUAL_SESSION) | Q(session_id__isnull=True) | Q(session_id='')
    return Q(session_id=session_id)


@dataclass
class SubmissionPage:
    items: List[Submission]
    total_count: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.limit) if self.limit else 0

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev_page(self) -> bool:
        return self.page > 1

    def pagination(self) -> dict:
        return {
            'currentPage': self.page,
            'totalPages': self.total_pages,
            'totalCount': self.total_count,
            'limit': self.limit,
            'hasNextPage': self.has_next_page,
            'hasPrevPage': self.has_prev_page,
        }


def list_submissions(question_id=None, session_id: Optional[str] = None,
                     page: int = 1, limit: int = DEFAULT_PAGE_LIMIT) -> SubmissionPage:
    """Newest-first page of submissions, optionally narrowed by question and session."""
    if page < 1:
        raise SubmissionValidationError('page must be 1 or greater')
    if limit < 1:
        raise SubmissionValidationError('limit must be 1 or greater')
    limit = min(limit, MAX_PAGE_LIMIT)

    qs = Submission.objects.all()
    if question_id is not None:
        qs = qs.filter(question_id=_coerce_question_id(question_id))
    if session_id and session_id.strip():
        qs = qs.filter(session_filter(session_id))

    total_count = qs.count()
    offset = (page - 1) * limit
    items = list(qs[offset:offset + limit]) if offset < total_count else []
    return SubmissionPage(items=items, total_count=total_count, page=page, limit=limit)


def delete_submissions(submission_ids) -> int:
    """Delete by primary key. Ids that match nothing are ignored."""
    if not isinstance(submission_ids, list) or not submission_ids:
        raise SubmissionValidationError('No submission IDs provided')
    if not all(isinstance(i, (str, int)) and not isinstance(i, bool) for i in submission_ids):
        raise SubmissionValidationError('Submission IDs must be strings')

    pks = []
    for raw in submission_ids:
        try:
            pk = int(raw)
        except ValueError:
            logger.debug("[Submissions] Ignoring unknown id %r", raw)
            continue
        if 1 <= pk <= MAX_DB_INT:
            pks.append(pk)
        else:
            logger.debug("[Submissions] Ignoring unknown id %r", raw)

    deleted_count, _ = Submission.objects.filter(pk__in=pks).delete() if pks else (0, {})
    logger.info("[Submissions] Deleted %d of %d requested submissions", deleted_count, len(submission_ids))
    return deleted_count


# ---------------------------------------------------------------------------
# Operator tooling: statistics, diagnostics and bulk cleanup.
# ---------------------------------------------------------------------------

def _without_session() -> Q:
    return Q(session_id__isnull=True) | Q(session_id='')


def _test_data() -> Q:
    return (
        Q(control_name__icontains='TEST')
        | Q(control_name__icontains='DEBUG')
        | Q(session_id__icontains='test_')
        | Q(session_id__icontains='migrated_')
        | Q(session_id__icontains='debug_')
        | Q(question_id__gte=TEST_QUESTION_ID_FLOOR)
    )


def _old_data_cutoff():
    return timezone.now() - timedelta(days=settings.OLD_SUBMISSION_DAYS)


def distinct_session_ids() -> list:
    return list(Submission.objects.order_by().values_list('session_id', flat=True).distinct())


def _summary(submission: Submission) -> dict:
    return {
        '_id': str(submission.pk),
        'createdAt': submission.created_at.isoformat(),
        'controlName': submission.control_name,
        'sessionId': submission.session_id,
        'questionId': submission.question_id,
    }


def recent_submissions(limit: int) -> list:
    return [_summary(s) for s in Submission.objects.all()[:limit]]


def collection_stats() -> dict:
    return {
        'totalSubmissions': Submission.objects.count(),
        'submissionsWithSessionId': Submission.objects.exclude(_without_session()).count(),
        'submissionsWithoutSessionId': Submission.objects.filter(_without_session()).count(),
        'uniqueSessionIds': distinct_session_ids(),
    }


def diagnostics(sample_size: int = 25) -> dict:
    """Read-only look at how the session field is populated across the collection."""
    latest = list(Submission.objects.all()[:sample_size])
    analysis = [
        {
            'index': i + 1,
            '_id': str(s.pk),
            'createdAt': s.created_at.isoformat(),
            'controlName': s.control_name,
            'questionId': s.question_id,
            'sessionId': s.session_id,
            'sessionIdExists': s.session_id is not None,
            'sessionIdHasValue': bool(s.session_id),
            'sessionIdLength': len(s.session_id or ''),
        }
        for i, s in enumerate(latest)
    ]
    stats = {
        'sampled': len(latest),
        'withSessionId': sum(1 for s in latest if s.session_id),
        'withoutSessionId': sum(1 for s in latest if not s.session_id),
        'nullSessionId': sum(1 for s in latest if s.session_id is None),
        'emptyStringSessionId': sum(1 for s in latest if s.session_id == ''),
        'uniqueSessionIds': sorted({s.session_id for s in latest if s.session_id}),
    }
    grouped = (
        Submission.objects.order_by()
        .values('session_id')
        .annotate(count=Count('id'))
        .order_by('-count')
    )
    issues = [
        "Some submissions don't have sessionId values" if stats['withoutSessionId'] else None,
        "Some submissions have null sessionId" if stats['nullSessionId'] else None,
        "Some submissions have empty string sessionId" if stats['emptyStringSessionId'] else None,
        "No valid sessionIds found in database" if not stats['uniqueSessionIds'] else None,
    ]
    return {
        'totalInDb': Submission.objects.count(),
        'stats': stats,
        'distinctSessionIds': [{'sessionId': g['session_id'], 'count': g['count']} for g in grouped],
        'sampleSubmissions': analysis[:10],
        'allAnalysis': analysis,
        'possibleIssues': [i for i in issues if i],
    }


class CleanupAction(str, Enum):
    DELETE_ALL = 'delete-all'
    DELETE_WITHOUT_SESSION = 'delete-without-sessionid'
    DELETE_TEST_DATA = 'delete-test-data'
    DELETE_OLD_DATA = 'delete-old-data'
    ANALYZE_ONLY = 'analyze-only'


def _analysis() -> dict:
    return {
        'totalSubmissions': Submission.objects.count(),
        'submissionsWithoutSessionId': Submission.objects.filter(_without_session()).count(),
        'testSubmissions': Submission.objects.filter(_test_data()).count(),
        'oldSubmissions': Submission.objects.filter(created_at__lt=_old_data_cutoff()).count(),
    }


def cleanup_options() -> dict:
    """What each cleanup action would remove right now."""
    analysis = _analysis()
    return {
        'stats': {
            **collection_stats(),
            'testSubmissions': analysis['testSubmissions'],
            'oldSubmissions': analysis['oldSubmissions'],
            'recentSubmissions': recent_submissions(10),
        },
        'cleanupOptions': {
            CleanupAction.DELETE_ALL.value: {
                'description': 'Delete ALL submissions (requires confirmation)',
                'wouldDelete': analysis['totalSubmissions'],
                'warning': 'This is irreversible!',
            },
            CleanupAction.DELETE_WITHOUT_SESSION.value: {
                'description': 'Delete submissions without sessionId',
                'wouldDelete': analysis['submissionsWithoutSessionId'],
                'recommended': analysis['submissionsWithoutSessionId'] > 0,
            },
            CleanupAction.DELETE_TEST_DATA.value: {
                'description': 'Delete test/debug submissions',
                'wouldDelete': analysis['testSubmissions'],
                'recommended': analysis['testSubmissions'] > 0,
            },
            CleanupAction.DELETE_OLD_DATA.value: {
                'description': f'Delete submissions older than {settings.OLD_SUBMISSION_DAYS} days',
                'wouldDelete': analysis['oldSubmissions'],
                'recommended': analysis['oldSubmissions'] > 0,
            },
        },
    }


def cleanup(action, confirmation_code: Optional[str] = None) -> dict:
    """Run one bulk cleanup action and report counts before and after."""
    try:
        action = CleanupAction(action)
    except ValueError:
        raise SubmissionValidationError(
            'Invalid action. Use: ' + ', '.join(a.value for a in CleanupAction)
        )
    if action is CleanupAction.DELETE_ALL and confirmation_code != DELETE_ALL_CONFIRMATION:
        raise SubmissionValidationError(
            f'Invalid confirmation code. Use "{DELETE_ALL_CONFIRMATION}" to confirm deletion.'
        )

    before = collection_stats()
    logger.info("[Submissions Cleanup] %s requested, stats before: %s", action.value, before)

    result = {'action': action.value}
    if action is CleanupAction.DELETE_ALL:
        deleted, _ = Submission.objects.all().delete()
        result.update(deletedCount=deleted, message=f'Successfully deleted all {deleted} submissions')
    elif action is CleanupAction.DELETE_WITHOUT_SESSION:
        deleted, _ = Submission.objects.filter(_without_session()).delete()
        result.update(deletedCount=deleted,
                      message=f'Successfully deleted {deleted} submissions without sessionId')
    elif action is CleanupAction.DELETE_TEST_DATA:
        deleted, _ = Submission.objects.filter(_test_data()).delete()
        result.update(deletedCount=deleted, message=f'Successfully deleted {deleted} test submissions')
    elif action is CleanupAction.DELETE_OLD_DATA:
        cutoff = _old_data_cutoff()
        deleted, _ = Submission.objects.filter(created_at__lt=cutoff).delete()
        result.update(deletedCount=deleted, cutoffDate=cutoff.isoformat(),
                      message=f'Successfully deleted {deleted} submissions older than '
                              f'{settings.OLD_SUBMISSION_DAYS} days')
    else:
        analysis = _analysis()
        analysis['recentSubmissions'] = recent_submissions(5)
        recommendations = [
            f"{analysis['submissionsWithoutSessionId']} submissions without sessionId"
            if analysis['submissionsWithoutSessionId'] else None,
            f"{analysis['testSubmissions']} test submissions" if analysis['testSubmissions'] else None,
            f"{analysis['oldSubmissions']} submissions older than {settings.OLD_SUBMISSION_DAYS} days"
            if analysis['oldSubmissions'] else None,
        ]
        result.update(analysis=analysis,
                      recommendations=[r for r in recommendations if r],
                      message='Analysis completed - no data was deleted')

    after = collection_stats()
    logger.info("[Submissions Cleanup] %s finished, stats after: %s", action.value, after)
    result.update(beforeStats=before, afterStats=after, timestamp=timezone.now().isoformat())
    return result
