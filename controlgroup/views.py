import logging

from django.contrib import messages
from django.db import DatabaseError
from django.http import Http404, HttpResponse, HttpResponseBadRequest, HttpResponseRedirect
from django.shortcuts import render
from django.urls import reverse
from django.views.decorators.http import require_GET, require_POST

from questions.catalog import QuestionNotFound, get_question, load_questions
from submissions import store

from . import session as session_tokens
from . import workflow
from .tables import authoring_rows, fetch_peer_submissions, peer_table
from .workflow import Stage, WorkflowError

logger = logging.getLogger(__name__)

STATE_KEY = 'controlgroup_workflow'


def load_state(request, token):
    data = request.session.get(STATE_KEY)
    if data and data.get('session_id') == token:
        try:
            return workflow.WorkflowState.from_dict(data)
        except (KeyError, ValueError, TypeError) as e:
            logger.warning("[Control Workflow] Discarding unreadable saved state: %s", e)
    return workflow.new_state(token)


def save_state(request, state):
    request.session[STATE_KEY] = state.to_dict()
    request.session.modified = True


def _active_question(state):
    if state.question_id is None:
        return None
    return get_question(state.question_id)


def index(request):
    token = session_tokens.resolve_session_token(request.GET)
    if token is None:
        return render(request, 'controlgroup/session_popup.html')

    state = load_state(request, token)
    try:
        question = _active_question(state)
    except QuestionNotFound:
        messages.error(request, 'The selected question is no longer available. Please pick another one.')
        state = workflow.start_over(state)
        save_state(request, state)
        question = None

    context = {
        'session_id': token,
        'is_group': token != store.INDIVIDUAL_SESSION,
        'share_url': session_tokens.share_url(request, token),
        'state': state,
        'stage': state.stage.value,
        'question': question,
        'questions': load_questions(),
    }

    if state.stage is Stage.LOCKED:
        context.update({
            'rows': authoring_rows(question, state),
            'names': list(enumerate(state.names)),
            'can_add_column': len(state.columns) < workflow.max_columns(),
            'max_columns': workflow.max_columns(),
            'can_submit': workflow.is_submittable(state),
            'pending': state.pending,
            'palette': workflow.palette(),
        })
        if state.pending is not None:
            pending_cell = state.columns[state.pending.column][state.pending.row]
            context['pending_feature'] = question.features[state.pending.row]
            context['pending_description'] = pending_cell.description
            context['pending_color'] = pending_cell.color or workflow.palette()[0]
    elif state.stage is Stage.REVIEWING:
        try:
            page = fetch_peer_submissions(question.id, token)
            context['peers'] = peer_table(question, page.items, page.total_count)
        except DatabaseError as e:
            logger.error("[Peer Viewer] Could not load submissions for question %s: %s", question.id, e)
            messages.error(request, 'Could not load submissions. Press REFRESH to try again.')
            context['peers'] = None
        context['submitted_count'] = len(state.submission_ids)

    return render(request, 'controlgroup/activity.html', context)


@require_POST
def choose_mode(request):
    try:
        mode = session_tokens.SessionMode(request.POST.get('mode'))
    except ValueError:
        return HttpResponseBadRequest('Unknown mode')

    token = session_tokens.token_for_mode(mode)
    if mode is session_tokens.SessionMode.INDIVIDUAL:
        return HttpResponseRedirect(session_tokens.activity_url(token))

    context = {
        'session_id': token,
        'share_url': session_tokens.share_url(request, token),
        'start_url': session_tokens.activity_url(token),
        'qr_url': session_tokens.qr_url(token),
    }
    return render(request, 'controlgroup/group_setup.html', context)


@require_GET
def qr_code(request):
    token = session_tokens.resolve_session_token(request.GET)
    if token is None:
        return HttpResponseBadRequest('sessionID is required')
    png = session_tokens.qr_png(session_tokens.share_url(request, token))
    return HttpResponse(png, content_type='image/png')


# --- Workflow actions ------------------------------------------------------

def _int_field(request, name):
    try:
        return int(request.POST.get(name, ''))
    except ValueError:
        raise WorkflowError(f'{name} must be a number')


def _create_submission(payload):
    return store.create_submission(payload).pk


def _select(request, state):
    return workflow.select_question(state, get_question(request.POST.get('question_id')))


def _back_to_questions(request, state):
    return workflow.back_to_questions(state)


def _lock(request, state):
    return workflow.lock(state)


def _add_column(request, state):
    updated = workflow.add_column(state, _active_question(state))
    if updated is state:
        messages.warning(request, f'You can add at most {workflow.max_columns()} new controls.')
    return updated


def _delete_column(request, state):
    return workflow.delete_column(state, _int_field(request, 'column'))


def _rename_column(request, state):
    return workflow.rename_column(state, _int_field(request, 'column'), request.POST.get('name', ''))


def _set_cell(request, state):
    column = _int_field(request, 'column')
    # The header text box travels with every cell edit so an unsaved name is kept.
    if 'control_name' in request.POST:
        state = workflow.rename_column(state, column, request.POST['control_name'])
    return workflow.set_cell(state, _active_question(state), column,
                             _int_field(request, 'row'), request.POST.get('value'))


def _confirm_different(request, state):
    return workflow.confirm_different(state, request.POST.get('description', ''), request.POST.get('color'))


def _cancel_different(request, state):
    return workflow.cancel_different(state)


def _submit(request, state):
    state, report = workflow.submit(state, _create_submission)
    for failure in report.failures:
        messages.error(request, f'"{failure.name}" could not be saved: {failure.error}')
    if report.created_ids:
        messages.success(request, f'Submitted {len(report.created_ids)} control(s).')
    return state


def _skip(request, state):
    return workflow.skip(state)


def _back_to_authoring(request, state):
    return workflow.back_to_authoring(state, store.delete_submissions)


def _start_over(request, state):
    return workflow.start_over(state)


def _refresh(request, state):
    return state


ACTIONS = {
    'select-question': _select,
    'back-to-questions': _back_to_questions,
    'lock': _lock,
    'add-column': _add_column,
    'delete-column': _delete_column,
    'rename-column': _rename_column,
    'set-cell': _set_cell,
    'confirm-different': _confirm_different,
    'cancel-different': _cancel_different,
    'submit': _submit,
    'skip': _skip,
    'back-to-authoring': _back_to_authoring,
    'start-over': _start_over,
    'refresh': _refresh,
}


@require_POST
def act(request, action):
    handler = ACTIONS.get(action)
    if handler is None:
        raise Http404(f'Unknown action: {action}')

    token = session_tokens.resolve_session_token(request.POST)
    if token is None:
        return HttpResponseRedirect(reverse('controlgroup:index'))

    state = load_state(request, token)
    try:
        state = handler(request, state)
    except (WorkflowError, QuestionNotFound) as e:
        messages.error(request, str(e))
    except DatabaseError as e:
        logger.error("[Control Workflow] %s failed: %s", action, e)
        messages.error(request, 'Something went wrong while saving. Please try again.')
    else:
        save_state(request, state)

    return HttpResponseRedirect(session_tokens.activity_url(token))
