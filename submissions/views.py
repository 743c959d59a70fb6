import json
import logging

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods

from . import store
from .store import SubmissionValidationError

logger = logging.getLogger(__name__)


def _error(message, status):
    return JsonResponse({'success': False, 'error': message}, status=status)


def _json_body(request):
    try:
        return json.loads(request.body or b'{}')
    except ValueError:
        raise SubmissionValidationError('Request body must be valid JSON')


def _int_param(request, name, default):
    raw = request.GET.get(name)
    if raw in (None, ''):
        return default
    try:
        return int(raw)
    except ValueError:
        raise SubmissionValidationError(f'{name} must be a number')


@csrf_exempt
@require_http_methods(['GET', 'POST', 'DELETE'])
def submissions(request):
    try:
        if request.method == 'POST':
            return _create(request)
        if request.method == 'DELETE':
            return _delete(request)
        return _list(request)
    except SubmissionValidationError as e:
        return _error(str(e), 400)
    except Exception as e:
        logger.exception("[Submissions API] %s %s failed", request.method, request.path)
        return _error(str(e) or 'An unknown error occurred', 500)


def _create(request):
    submission = store.create_submission(_json_body(request))
    return JsonResponse({
        'success': True,
        'message': 'Control data submitted successfully',
        'data': submission.to_document(),
    }, status=201)


def _list(request):
    session_id = request.GET.get('sessionId') or None
    page = store.list_submissions(
        question_id=request.GET.get('questionId') or None,
        session_id=session_id,
        page=_int_param(request, 'page', 1),
        limit=_int_param(request, 'limit', store.DEFAULT_PAGE_LIMIT),
    )
    return JsonResponse({
        'success': True,
        'data': [s.to_document() for s in page.items],
        'pagination': page.pagination(),
        'sessionId': session_id,
        'count': len(page.items),
    })


def _delete(request):
    body = _json_body(request)
    if not isinstance(body, dict):
        raise SubmissionValidationError('Request body must be a JSON object')
    deleted = store.delete_submissions(body.get('submissionIds'))
    return JsonResponse({
        'success': True,
        'message': f'Successfully deleted {deleted} submissions',
        'deletedCount': deleted,
    })


@csrf_exempt
@require_http_methods(['GET', 'POST'])
def cleanup(request):
    try:
        if request.method == 'GET':
            return JsonResponse({'success': True, 'message': 'Database analysis completed',
                                 **store.cleanup_options()})
        body = _json_body(request)
        if not isinstance(body, dict):
            raise SubmissionValidationError('Request body must be a JSON object')
        result = store.cleanup(body.get('action'), body.get('confirmationCode'))
        return JsonResponse({'success': True, **result})
    except SubmissionValidationError as e:
        return _error(str(e), 400)
    except Exception as e:
        logger.exception("[Submissions Cleanup API] %s failed", request.method)
        return _error(str(e) or 'Cleanup failed', 500)


@require_GET
def debug(request):
    try:
        return JsonResponse({'success': True, 'message': 'Diagnostic analysis of submissions',
                             **store.diagnostics()})
    except Exception as e:
        logger.exception("[Submissions Debug API] failed")
        return _error(str(e) or 'An unknown error occurred', 500)
