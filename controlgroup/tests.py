from django.test import SimpleTestCase, TestCase

from questions.catalog import Feature, Question, get_question
from submissions.models import Submission

from . import session as session_tokens
from . import workflow
from .tables import peer_table
from .workflow import CELL_STYLES, CellValue, ControlSelection, Stage, WorkflowError

QUESTION = Question(
    id=42,
    question='Does the cream reduce pain?',
    independent_variable='cream',
    dependent_variable='pain score',
    features=[
        Feature('Active ingredient', 'compound', option1='ABSENT', absent='Y'),
        Feature('Texture', 'look and smell', option1='MATCH', absent='N'),
        Feature('Routine', 'how it is applied', option1='MATCH', absent='N'),
    ],
)


def locked_state(columns=0):
    state = workflow.new_state('grp')
    state = workflow.select_question(state, QUESTION)
    state = workflow.lock(state)
    for _ in range(columns):
        state = workflow.add_column(state, QUESTION)
    return state


def fill(state, column, value='MATCH', name='Ctrl'):
    for row in range(len(QUESTION.features)):
        state = workflow.set_cell(state, QUESTION, column, row, value)
    return workflow.rename_column(state, column, name)


class WorkflowTransitionTests(SimpleTestCase):

    def test_stage_order(self):
        state = workflow.new_state('grp')
        self.assertIs(state.stage, Stage.SELECTING_QUESTION)
        state = workflow.select_question(state, QUESTION)
        self.assertIs(state.stage, Stage.DETAILS_SHOWN)
        self.assertEqual(state.question_id, 42)
        state = workflow.lock(state)
        self.assertIs(state.stage, Stage.LOCKED)

    def test_back_to_questions_clears_question(self):
        state = workflow.select_question(workflow.new_state('grp'), QUESTION)
        state = workflow.back_to_questions(state)
        self.assertIs(state.stage, Stage.SELECTING_QUESTION)
        self.assertIsNone(state.question_id)
        self.assertEqual(state.columns, ())

    def test_editing_requires_locked_question(self):
        state = workflow.select_question(workflow.new_state('grp'), QUESTION)
        with self.assertRaises(WorkflowError):
            workflow.add_column(state, QUESTION)

    def test_transitions_do_not_mutate_input(self):
        state = locked_state(columns=1)
        workflow.set_cell(state, QUESTION, 0, 0, 'MATCH')
        self.assertIs(state.columns[0][0].value, CellValue.EMPTY)

    def test_add_column_creates_empty_cells(self):
        state = locked_state(columns=1)
        self.assertEqual(len(state.columns[0]), 3)
        self.assertTrue(all(cell == ControlSelection() for cell in state.columns[0]))
        self.assertEqual(state.names, ('',))

    def test_seventh_column_is_ignored(self):
        state = locked_state(columns=6)
        self.assertIs(workflow.add_column(state, QUESTION), state)
        self.assertEqual(len(state.columns), 6)

    def test_delete_middle_column_keeps_order(self):
        state = locked_state(columns=3)
        for i, name in enumerate(['first', 'second', 'third']):
            state = workflow.rename_column(state, i, name)
        state = workflow.set_cell(state, QUESTION, 0, 0, 'ABSENT')
        state = workflow.set_cell(state, QUESTION, 2, 0, 'MATCH')

        state = workflow.delete_column(state, 1)

        self.assertEqual(state.names, ('first', 'third'))
        self.assertIs(state.columns[0][0].value, CellValue.ABSENT)
        self.assertIs(state.columns[1][0].value, CellValue.MATCH)

    def test_delete_unknown_column(self):
        with self.assertRaises(WorkflowError):
            workflow.delete_column(locked_state(columns=1), 3)

    def test_start_over_keeps_session(self):
        state = workflow.start_over(fill(locked_state(columns=1), 0))
        self.assertEqual(state, workflow.new_state('grp'))


class CellSelectionTests(SimpleTestCase):

    def test_absent_only_offered_when_allowed(self):
        self.assertIn(CellValue.ABSENT, workflow.options_for(QUESTION.features[0]))
        self.assertNotIn(CellValue.ABSENT, workflow.options_for(QUESTION.features[1]))

        state = locked_state(columns=1)
        with self.assertRaises(WorkflowError):
            workflow.set_cell(state, QUESTION, 0, 1, 'ABSENT')
        state = workflow.set_cell(state, QUESTION, 0, 0, 'ABSENT')
        self.assertIs(state.columns[0][0].value, CellValue.ABSENT)

    def test_unknown_value_rejected(self):
        with self.assertRaises(WorkflowError):
            workflow.set_cell(locked_state(columns=1), QUESTION, 0, 0, 'MAYBE')

    def test_different_confirm(self):
        state = workflow.set_cell(locked_state(columns=1), QUESTION, 0, 1, 'DIFFERENT')
        self.assertIsNotNone(state.pending)
        with self.assertRaises(WorkflowError):
            workflow.confirm_different(state, '   ', '#ff7ef2')
        with self.assertRaises(WorkflowError):
            workflow.confirm_different(state, 'rougher', '#123456')

        state = workflow.confirm_different(state, '  rougher texture ', '#00a3ff')
        self.assertIsNone(state.pending)
        self.assertEqual(state.columns[0][1],
                         ControlSelection(CellValue.DIFFERENT, 'rougher texture', '#00a3ff'))

    def test_cancel_on_new_cell_reverts_to_empty(self):
        state = workflow.set_cell(locked_state(columns=1), QUESTION, 0, 1, 'DIFFERENT')
        state = workflow.cancel_different(state)
        self.assertIsNone(state.pending)
        self.assertEqual(state.columns[0][1], ControlSelection())

    def test_cancel_reverts_to_previous_value(self):
        state = workflow.set_cell(locked_state(columns=1), QUESTION, 0, 1, 'MATCH')
        state = workflow.set_cell(state, QUESTION, 0, 1, 'DIFFERENT')
        state = workflow.cancel_different(state)
        self.assertIs(state.columns[0][1].value, CellValue.MATCH)

    def test_match_clears_description(self):
        state = workflow.set_cell(locked_state(columns=1), QUESTION, 0, 1, 'DIFFERENT')
        state = workflow.confirm_different(state, 'rough', '#00a3ff')
        state = workflow.set_cell(state, QUESTION, 0, 1, 'MATCH')
        self.assertEqual(state.columns[0][1], ControlSelection(CellValue.MATCH))

    def test_every_value_has_a_style(self):
        self.assertEqual(set(CELL_STYLES), set(CellValue))
        self.assertIn('#00a3ff', workflow.cell_style(CellValue.DIFFERENT, '#00a3ff'))
        self.assertNotIn('#00a3ff', workflow.cell_style(CellValue.MATCH, '#00a3ff'))


class SubmittableTests(SimpleTestCase):

    def test_needs_a_column(self):
        self.assertFalse(workflow.is_submittable(locked_state()))

    def test_complete_column(self):
        self.assertTrue(workflow.is_submittable(fill(locked_state(columns=1), 0)))

    def test_blank_name(self):
        self.assertFalse(workflow.is_submittable(fill(locked_state(columns=1), 0, name='  ')))

    def test_empty_cell(self):
        state = fill(locked_state(columns=2), 0)
        state = workflow.rename_column(state, 1, 'Other')
        self.assertFalse(workflow.is_submittable(state))

    def test_different_needs_description(self):
        state = fill(locked_state(columns=1), 0)
        state = workflow.set_cell(state, QUESTION, 0, 2, 'DIFFERENT')
        self.assertFalse(workflow.is_submittable(state))
        state = workflow.confirm_different(state, 'twice as long', None)
        self.assertTrue(workflow.is_submittable(state))
        self.assertEqual(state.columns[0][2].color, '#ff7ef2')

    def test_column_predicate_matches_cells(self):
        done = (ControlSelection(CellValue.MATCH), ControlSelection(CellValue.DIFFERENT, 'x', '#ff7ef2'))
        blank_description = (ControlSelection(CellValue.MATCH), ControlSelection(CellValue.DIFFERENT, ' '))
        self.assertTrue(workflow.column_is_complete(done, 'A'))
        self.assertFalse(workflow.column_is_complete(done, ''))
        self.assertFalse(workflow.column_is_complete(blank_description, 'A'))


class SubmitTests(SimpleTestCase):

    def test_submit_sends_one_payload_per_column(self):
        state = fill(fill(locked_state(columns=2), 0, name='One'), 1, name=' Two ')
        sent = []

        def create(payload):
            sent.append(payload)
            return len(sent)

        state, report = workflow.submit(state, create)

        self.assertTrue(report.ok)
        self.assertEqual(report.created_ids, ['1', '2'])
        self.assertIs(state.stage, Stage.REVIEWING)
        self.assertEqual(state.submission_ids, ('1', '2'))
        self.assertEqual([p['controlName'] for p in sent], ['One', 'Two'])
        self.assertEqual(sent[0]['questionId'], 42)
        self.assertEqual(sent[0]['sessionId'], 'grp')
        self.assertEqual(sent[0]['newControlSelections'][0], {'value': 'MATCH', 'description': ''})

    def test_partial_failure_still_reviews(self):
        state = fill(fill(locked_state(columns=2), 0, name='One'), 1, name='Two')

        def create(payload):
            if payload['controlName'] == 'One':
                raise RuntimeError('connection reset')
            return 'abc'

        state, report = workflow.submit(state, create)
        self.assertFalse(report.ok)
        self.assertEqual(report.failures[0].name, 'One')
        self.assertEqual(report.created_ids, ['abc'])
        self.assertIs(state.stage, Stage.REVIEWING)

    def test_submit_blocked_when_incomplete(self):
        with self.assertRaises(WorkflowError):
            workflow.submit(locked_state(columns=1), lambda payload: 1)

    def test_skip(self):
        state = workflow.skip(locked_state())
        self.assertIs(state.stage, Stage.REVIEWING)
        self.assertEqual(state.submission_ids, ())

    def test_back_deletes_only_this_batch(self):
        state, _ = workflow.submit(fill(locked_state(columns=1), 0), lambda payload: 7)
        deleted = []
        state = workflow.back_to_authoring(state, lambda ids: deleted.extend(ids) or len(ids))
        self.assertEqual(deleted, ['7'])
        self.assertIs(state.stage, Stage.LOCKED)
        self.assertEqual(state.submission_ids, ())
        self.assertEqual(len(state.columns), 1)

    def test_back_keeps_state_when_delete_fails(self):
        reviewing, _ = workflow.submit(fill(locked_state(columns=1), 0), lambda payload: 7)

        def delete(ids):
            raise RuntimeError('offline')

        with self.assertRaises(RuntimeError):
            workflow.back_to_authoring(reviewing, delete)
        self.assertIs(reviewing.stage, Stage.REVIEWING)

    def test_state_survives_session_storage(self):
        state = workflow.set_cell(fill(locked_state(columns=2), 0), QUESTION, 1, 0, 'DIFFERENT')
        self.assertEqual(workflow.WorkflowState.from_dict(state.to_dict()), state)


class SessionTokenTests(SimpleTestCase):

    def test_resolve(self):
        self.assertEqual(session_tokens.resolve_session_token({'sessionID': ' abc '}), 'abc')
        self.assertIsNone(session_tokens.resolve_session_token({'sessionID': '  '}))
        self.assertIsNone(session_tokens.resolve_session_token({}))

    def test_modes(self):
        self.assertEqual(session_tokens.token_for_mode('individual'), 'individual')
        token = session_tokens.token_for_mode('group')
        self.assertEqual(len(token), 13)
        self.assertTrue(token.isalnum() and token == token.lower())
        self.assertNotEqual(token, session_tokens.token_for_mode('group'))

    def test_activity_url_carries_token(self):
        self.assertEqual(session_tokens.activity_url('abc'), '/controlgroup/?sessionID=abc')

    def test_qr_png(self):
        self.assertTrue(session_tokens.qr_png('http://testserver/controlgroup/?sessionID=abc')
                        .startswith(b'\x89PNG'))


class PeerTableTests(SimpleTestCase):

    def test_rows_align_with_features(self):
        submissions = [
            Submission(question_id=42, control_name='Sham', new_control_selections=[
                {'value': 'ABSENT', 'description': ''},
                {'value': 'DIFFERENT', 'description': 'gritty', 'color': '#00c802'},
            ]),
        ]
        table = peer_table(QUESTION, submissions, total_count=1)

        self.assertEqual(table.headers, ['Sham'])
        self.assertEqual(len(table.rows), 3)
        self.assertEqual(table.rows[0].cells[0].label, 'ABSENT')
        self.assertEqual(table.rows[1].cells[0].title, 'gritty')
        self.assertIn('#00c802', table.rows[1].cells[0].style)
        self.assertEqual(table.rows[2].cells[0].label, '-')
        self.assertEqual(table.rows[0].complete.label, 'ABSENT')

    def test_empty(self):
        self.assertTrue(peer_table(QUESTION, [], total_count=0).is_empty)


class ActivityViewTests(TestCase):

    def setUp(self):
        self.question = get_question(1)
        self.token = 'classA'

    def _act(self, action, **data):
        data['sessionID'] = self.token
        return self.client.post(f'/controlgroup/act/{action}/', data)

    def test_without_token_asks_for_mode(self):
        response = self.client.get('/controlgroup/')
        self.assertContains(response, 'How are you completing this activity?')

    def test_individual_mode_redirects_with_fixed_token(self):
        response = self.client.post('/controlgroup/mode/', {'mode': 'individual'})
        self.assertRedirects(response, '/controlgroup/?sessionID=individual', fetch_redirect_response=False)

    def test_group_mode_shows_share_link(self):
        response = self.client.post('/controlgroup/mode/', {'mode': 'group'})
        self.assertContains(response, 'Share this link with your group')
        self.assertContains(response, '/controlgroup/?sessionID=')

    def test_unknown_mode(self):
        self.assertEqual(self.client.post('/controlgroup/mode/', {'mode': 'solo'}).status_code, 400)

    def test_qr_code(self):
        response = self.client.get('/controlgroup/qr.png', {'sessionID': 'abc'})
        self.assertEqual(response['Content-Type'], 'image/png')
        self.assertEqual(self.client.get('/controlgroup/qr.png').status_code, 400)

    def test_replication_scenario(self):
        self._act('select-question', question_id=self.question.id)
        self._act('lock')
        self._act('add-column')
        for row in range(len(self.question.features)):
            self._act('set-cell', column=0, row=row, value='MATCH')
        self._act('rename-column', column=0, name='Replication')

        page = self.client.get('/controlgroup/', {'sessionID': self.token})
        self.assertContains(page, 'SUBMIT')

        self._act('submit')

        self.assertEqual(Submission.objects.count(), 1)
        submission = Submission.objects.get()
        self.assertEqual(submission.control_name, 'Replication')
        self.assertEqual(submission.session_id, self.token)
        self.assertEqual(len(submission.new_control_selections), len(self.question.features))

        page = self.client.get('/controlgroup/', {'sessionID': self.token})
        self.assertContains(page, 'REPLICATION')
        self.assertContains(page, 'REFRESH')

        self._act('back-to-authoring')
        self.assertEqual(Submission.objects.count(), 0)

        self._act('start-over')
        page = self.client.get('/controlgroup/', {'sessionID': self.token})
        self.assertContains(page, 'Select an experiment')

    def test_start_over_keeps_peer_data(self):
        Submission.objects.create(question_id=self.question.id, new_control_selections=[],
                                  session_id=self.token, control_name='Peer')
        self._act('select-question', question_id=self.question.id)
        self._act('lock')
        self._act('skip')
        page = self.client.get('/controlgroup/', {'sessionID': self.token})
        self.assertContains(page, 'PEER')
        self._act('start-over')
        self.assertEqual(Submission.objects.count(), 1)

    def test_illegal_action_is_reported(self):
        self._act('select-question', question_id=self.question.id)
        response = self._act('add-column')
        self.assertEqual(response.status_code, 302)
        page = self.client.get('/controlgroup/', {'sessionID': self.token})
        self.assertContains(page, 'Not allowed while details shown')

    def test_unknown_action(self):
        self.assertEqual(self._act('explode').status_code, 404)

    def test_cell_edit_keeps_typed_column_name(self):
        self._act('select-question', question_id=self.question.id)
        self._act('lock')
        self._act('add-column')
        self._act('set-cell', column=0, row=0, value='MATCH', control_name='Sham')

        page = self.client.get('/controlgroup/', {'sessionID': self.token})
        self.assertContains(page, 'id="control-name-0" value="Sham"')
