import json
from datetime import timedelta

from django.test import TestCase
from django.utils import timezone

from . import store
from .models import Submission
from .store import SubmissionValidationError

URL = '/api/submissions'


def _column(*values):
    return [{'value': v, 'description': ''} for v in values]


class CreateSubmissionTests(TestCase):

    def test_requires_question_id(self):
        with self.assertRaises(SubmissionValidationError):
            store.create_submission({'newControlSelections': []})

    def test_rejects_non_numeric_question_id(self):
        for bad in ('abc', True, 1.5, [1]):
            with self.assertRaises(SubmissionValidationError):
                store.create_submission({'questionId': bad, 'newControlSelections': []})

    def test_requires_selection_array(self):
        with self.assertRaises(SubmissionValidationError):
            store.create_submission({'questionId': 1})
        with self.assertRaises(SubmissionValidationError):
            store.create_submission({'questionId': 1, 'newControlSelections': 'MATCH'})
        self.assertEqual(Submission.objects.count(), 0)

    def test_defaults(self):
        submission = store.create_submission({
            'questionId': '3', 'newControlSelections': _column('MATCH'), 'controlName': '  ', 'sessionId': '',
        })
        self.assertEqual(submission.question_id, 3)
        self.assertEqual(submission.control_name, 'NEW CONTROL')
        self.assertIsNone(submission.session_id)
        self.assertIsNotNone(submission.created_at)
        self.assertNotIn('sessionId', submission.to_document())


class ListSubmissionTests(TestCase):

    def setUp(self):
        self.legacy = Submission.objects.create(question_id=1, new_control_selections=[], session_id=None)
        self.individual = Submission.objects.create(question_id=1, new_control_selections=[],
                                                    session_id='individual')
        self.group = Submission.objects.create(question_id=1, new_control_selections=[], session_id='abc123')
        self.other_group = Submission.objects.create(question_id=1, new_control_selections=[],
                                                     session_id='ABC123')
        self.other_question = Submission.objects.create(question_id=2, new_control_selections=[],
                                                        session_id='abc123')

    def _ids(self, page):
        return {s.pk for s in page.items}

    def test_individual_includes_legacy_rows(self):
        page = store.list_submissions(question_id=1, session_id='individual')
        self.assertEqual(self._ids(page), {self.legacy.pk, self.individual.pk})

    def test_group_token_matches_exactly(self):
        page = store.list_submissions(question_id=1, session_id='abc123')
        self.assertEqual(self._ids(page), {self.group.pk})

    def test_newest_first(self):
        page = store.list_submissions(question_id=1)
        self.assertEqual(page.items[0].pk, self.other_group.pk)
        self.assertEqual(page.total_count, 4)

    def test_pagination(self):
        for _ in range(20):
            Submission.objects.create(question_id=5, new_control_selections=[], session_id='p')
        first = store.list_submissions(question_id=5, page=1, limit=15)
        second = store.list_submissions(question_id=5, page=2, limit=15)
        self.assertEqual(len(first.items), 15)
        self.assertEqual(len(second.items), 5)
        self.assertEqual(second.pagination(), {
            'currentPage': 2, 'totalPages': 2, 'totalCount': 20, 'limit': 15,
            'hasNextPage': False, 'hasPrevPage': True,
        })

    def test_bad_page(self):
        with self.assertRaises(SubmissionValidationError):
            store.list_submissions(page=0)


class SubmissionApiTests(TestCase):

    def _post(self, body):
        return self.client.post(URL, data=json.dumps(body), content_type='application/json')

    def _delete(self, body):
        return self.client.delete(URL, data=json.dumps(body), content_type='application/json')

    def test_round_trip(self):
        column = [
            {'value': 'MATCH', 'description': ''},
            {'value': 'DIFFERENT', 'description': 'x', 'color': '#ff0000'},
            {'value': 'ABSENT', 'description': ''},
        ]
        response = self._post({'questionId': 1, 'newControlSelections': column,
                               'controlName': 'Sham', 'sessionId': 'grp1'})
        self.assertEqual(response.status_code, 201)
        created = response.json()['data']

        listed = self.client.get(URL, {'questionId': 1, 'sessionId': 'grp1'}).json()
        self.assertTrue(listed['success'])
        self.assertEqual(len(listed['data']), 1)
        doc = listed['data'][0]
        self.assertEqual(doc['_id'], created['_id'])
        self.assertEqual(doc['newControlSelections'], column)
        self.assertEqual(doc['controlName'], 'Sham')
        self.assertEqual(doc['sessionId'], 'grp1')

    def test_create_validation_error(self):
        response = self._post({'newControlSelections': []})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'success': False, 'error': 'Question ID is required'})

    def test_malformed_json(self):
        response = self.client.post(URL, data='{not json', content_type='application/json')
        self.assertEqual(response.status_code, 400)

    def test_list_rejects_bad_limit(self):
        self.assertEqual(self.client.get(URL, {'limit': 'ten'}).status_code, 400)

    def test_individual_query_includes_missing_session(self):
        Submission.objects.create(question_id=1, new_control_selections=[])
        self._post({'questionId': 1, 'newControlSelections': [], 'sessionId': 'individual'})
        self._post({'questionId': 1, 'newControlSelections': [], 'sessionId': 'group-a'})

        body = self.client.get(URL, {'sessionId': 'individual'}).json()
        self.assertEqual(body['pagination']['totalCount'], 2)

    def test_delete_empty_list_is_rejected(self):
        Submission.objects.create(question_id=1, new_control_selections=[])
        response = self._delete({'submissionIds': []})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(Submission.objects.count(), 1)

    def test_malformed_question_id_is_rejected(self):
        for bad in ('--5', '\u00b2', '99999999999999999999999'):
            response = self._post({'questionId': bad, 'newControlSelections': []})
            self.assertEqual(response.status_code, 400, bad)
            self.assertFalse(response.json()['success'])
            self.assertEqual(self.client.get(URL, {'questionId': bad}).status_code, 400, bad)
        self.assertEqual(Submission.objects.count(), 0)

    def test_page_past_the_end_is_empty(self):
        Submission.objects.create(question_id=1, new_control_selections=[])
        body = self.client.get(URL, {'page': '99999999999999999999'}).json()
        self.assertTrue(body['success'])
        self.assertEqual(body['data'], [])
        self.assertEqual(body['pagination']['totalCount'], 1)

    def test_delete_out_of_range_id_is_ignored(self):
        Submission.objects.create(question_id=1, new_control_selections=[])
        response = self._delete({'submissionIds': ['99999999999999999999999']})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['deletedCount'], 0)
        self.assertEqual(Submission.objects.count(), 1)

    def test_delete_by_ids(self):
        keep = Submission.objects.create(question_id=1, new_control_selections=[])
        drop = Submission.objects.create(question_id=1, new_control_selections=[])
        response = self._delete({'submissionIds': [str(drop.pk), '999999', 'not-an-id']})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['deletedCount'], 1)
        self.assertEqual(list(Submission.objects.values_list('pk', flat=True)), [keep.pk])


class CleanupTests(TestCase):

    def setUp(self):
        Submission.objects.create(question_id=1, new_control_selections=[], session_id=None)
        Submission.objects.create(question_id=1, new_control_selections=[], session_id='')
        Submission.objects.create(question_id=1, new_control_selections=[], session_id='real')
        Submission.objects.create(question_id=1, new_control_selections=[], session_id='test_123')
        Submission.objects.create(question_id=900, new_control_selections=[], session_id='real')
        Submission.objects.create(question_id=1, new_control_selections=[], session_id='real',
                                  control_name='Schema_Test column')
        self.old = Submission.objects.create(question_id=2, new_control_selections=[], session_id='real')
        Submission.objects.filter(pk=self.old.pk).update(created_at=timezone.now() - timedelta(days=45))

    def _post(self, body):
        return self.client.post(f'{URL}/cleanup', data=json.dumps(body), content_type='application/json')

    def test_delete_all_needs_confirmation(self):
        response = self._post({'action': 'delete-all'})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(Submission.objects.count(), 7)

        response = self._post({'action': 'delete-all', 'confirmationCode': store.DELETE_ALL_CONFIRMATION})
        body = response.json()
        self.assertEqual(body['deletedCount'], 7)
        self.assertEqual(body['beforeStats']['totalSubmissions'], 7)
        self.assertEqual(body['afterStats']['totalSubmissions'], 0)

    def test_delete_without_session(self):
        result = store.cleanup('delete-without-sessionid')
        self.assertEqual(result['deletedCount'], 2)
        self.assertFalse(Submission.objects.filter(session_id__isnull=True).exists())

    def test_delete_test_data(self):
        result = store.cleanup('delete-test-data')
        self.assertEqual(result['deletedCount'], 3)

    def test_delete_old_data(self):
        result = store.cleanup('delete-old-data')
        self.assertEqual(result['deletedCount'], 1)
        self.assertFalse(Submission.objects.filter(pk=self.old.pk).exists())

    def test_analyze_only_deletes_nothing(self):
        body = self._post({'action': 'analyze-only'}).json()
        self.assertEqual(body['analysis']['submissionsWithoutSessionId'], 2)
        self.assertEqual(body['analysis']['testSubmissions'], 3)
        self.assertEqual(body['analysis']['oldSubmissions'], 1)
        self.assertEqual(Submission.objects.count(), 7)

    def test_unknown_action(self):
        self.assertEqual(self._post({'action': 'drop-everything'}).status_code, 400)

    def test_get_reports_options(self):
        body = self.client.get(f'{URL}/cleanup').json()
        self.assertEqual(body['cleanupOptions']['delete-all']['wouldDelete'], 7)
        self.assertTrue(body['cleanupOptions']['delete-test-data']['recommended'])

    def test_diagnostics(self):
        body = self.client.get(f'{URL}/debug').json()
        self.assertEqual(body['totalInDb'], 7)
        self.assertEqual(body['stats']['nullSessionId'], 1)
        self.assertEqual(body['stats']['emptyStringSessionId'], 1)
        counts = {row['sessionId']: row['count'] for row in body['distinctSessionIds']}
        self.assertEqual(counts['real'], 4)
