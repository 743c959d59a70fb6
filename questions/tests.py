import io
import json
import os
import tempfile

import pandas as pd
from django.core.management import CommandError, call_command
from django.test import SimpleTestCase, override_settings

from .catalog import Feature, Question, QuestionNotFound, get_question, load_questions
from .management.commands.import_questions import rows_to_questions


class CatalogTests(SimpleTestCase):

    def tearDown(self):
        load_questions(reload=True)

    def test_bundled_dataset_loads(self):
        questions = load_questions(reload=True)
        self.assertGreaterEqual(len(questions), 1)
        first = get_question(1)
        self.assertEqual(first.id, 1)
        self.assertTrue(first.features)

    def test_question_from_dict_maps_camel_case_fields(self):
        question = Question.from_dict({
            'id': '7',
            'question': 'Q?',
            'independentVariable': 'iv',
            'dependentVariable': 'dv',
            'methodologicalConsiderations': [
                {'feature': 'Dose', 'description': 'd', 'option1': 'MATCH', 'option1Text': 'same', 'absent': 'Y'},
            ],
        })
        self.assertEqual(question.id, 7)
        self.assertEqual(question.independent_variable, 'iv')
        self.assertEqual(question.features[0].option1_text, 'same')
        self.assertEqual(question.to_dict()['methodologicalConsiderations'][0]['option1Text'], 'same')

    def test_absent_flag(self):
        self.assertTrue(Feature('a', 'b', absent='Y').absent_allowed)
        self.assertTrue(Feature('a', 'b', absent=' y ').absent_allowed)
        self.assertFalse(Feature('a', 'b', absent='N').absent_allowed)
        self.assertFalse(Feature('a', 'b').absent_allowed)

    def test_unknown_question(self):
        with self.assertRaises(QuestionNotFound):
            get_question(9999)
        with self.assertRaises(QuestionNotFound):
            get_question('abc')

    @override_settings(QUESTIONS_PATH='/nonexistent/questions.json')
    def test_missing_dataset_gives_empty_catalog(self):
        self.assertEqual(load_questions(reload=True), [])


class ImportQuestionsTests(SimpleTestCase):

    def _frame(self):
        return pd.DataFrame([
            {'example': '', 'question': 'orphan', 'independentVariable': '', 'dependentVariable': '',
             'feature': 'skip me', 'description': 'x', 'option1': '', 'option1Text': '', 'absent': ''},
            {'example': 'A', 'question': 'Does A work?', 'independentVariable': 'a', 'dependentVariable': 'b',
             'feature': 'Dose', 'description': 'Amount given', 'option1': 'ABSENT', 'option1Text': 'none',
             'absent': 'Y'},
            {'example': '', 'question': '', 'independentVariable': '', 'dependentVariable': 'b2',
             'feature': 'Timing', 'description': 'When', 'option1': 'MATCH', 'option1Text': '', 'absent': ''},
            {'example': '', 'question': '', 'independentVariable': '', 'dependentVariable': '',
             'feature': 'No description', 'description': '', 'option1': '', 'option1Text': '', 'absent': ''},
            {'example': 'B', 'question': 'Does B work?', 'independentVariable': 'c', 'dependentVariable': 'd',
             'feature': 'Place', 'description': 'Where', 'option1': 'MATCH', 'option1Text': '', 'absent': 'N'},
        ])

    def test_groups_rows_by_example(self):
        questions = rows_to_questions(self._frame())

        self.assertEqual([q['id'] for q in questions], [1, 2])
        first = questions[0]
        self.assertEqual(first['question'], 'Does A work?')
        self.assertEqual(first['dependentVariable'], 'b2')
        self.assertEqual([f['feature'] for f in first['methodologicalConsiderations']], ['Dose', 'Timing'])
        self.assertEqual(first['methodologicalConsiderations'][1]['absent'], 'N')
        self.assertEqual(questions[1]['methodologicalConsiderations'][0]['feature'], 'Place')

    def test_command_writes_json(self):
        with tempfile.TemporaryDirectory() as tmp:
            csv_path = os.path.join(tmp, 'questions.csv')
            json_path = os.path.join(tmp, 'out', 'questions.json')
            self._frame().to_csv(csv_path, index=False, encoding='utf-8-sig')

            call_command('import_questions', csv_path, json_path, stdout=io.StringIO())

            with open(json_path, encoding='utf-8') as f:
                data = json.load(f)
        self.assertEqual(len(data), 2)
        self.assertEqual(data[0]['methodologicalConsiderations'][0]['option1'], 'ABSENT')

    def test_empty_csv_is_a_command_error(self):
        with tempfile.TemporaryDirectory() as tmp:
            csv_path = os.path.join(tmp, 'empty.csv')
            open(csv_path, 'w').close()
            with self.assertRaisesMessage(CommandError, 'CSV file is empty'):
                call_command('import_questions', csv_path, os.path.join(tmp, 'out.json'), stdout=io.StringIO())


class QuestionApiTests(SimpleTestCase):

    def test_list(self):
        response = self.client.get('/api/questions')
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body['success'])
        self.assertEqual(body['count'], len(body['data']))
        self.assertIn('methodologicalConsiderations', body['data'][0])

    def test_detail_not_found(self):
        response = self.client.get('/api/questions/4040')
        self.assertEqual(response.status_code, 404)
        self.assertFalse(response.json()['success'])
