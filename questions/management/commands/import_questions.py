import json
import os

import pandas as pd
from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

QUESTION_FIELDS = ['question', 'independentVariable', 'dependentVariable']


def _clean(value):
    if pd.isna(value):
        return ''
    return str(value).strip()


def rows_to_questions(df):
    """
    Group spreadsheet rows into question dicts.

    A blank ``example`` cell continues the last example seen above it. Rows
    before the first example are skipped.
    """
    df = df.rename(columns=lambda c: str(c).replace('\ufeff', '').strip())
    groups = {}
    current_example = ''

    for _, row in df.iterrows():
        example = _clean(row.get('example'))
        if example:
            current_example = example
        if not current_example:
            continue

        group = groups.setdefault(current_example, {
            'question': '',
            'independentVariable': '',
            'dependentVariable': '',
            'methodologicalConsiderations': [],
        })
        for name in QUESTION_FIELDS:
            value = _clean(row.get(name))
            if value:
                group[name] = value

        feature = _clean(row.get('feature'))
        description = _clean(row.get('description'))
        if feature and description:
            group['methodologicalConsiderations'].append({
                'feature': feature,
                'description': description,
                'option1': _clean(row.get('option1')),
                'option1Text': _clean(row.get('option1Text')),
                'absent': _clean(row.get('absent')) or 'N',
            })

    return [{'id': i + 1, **group} for i, group in enumerate(groups.values())]


class Command(BaseCommand):
    help = 'Converts the questions spreadsheet (CSV) into the JSON dataset used by the activity.'

    def add_arguments(self, parser):
        parser.add_argument('csv_path', help='CSV file with one row per methodological feature.')
        parser.add_argument('json_path', nargs='?', default=None,
                            help='Output file (defaults to settings.QUESTIONS_PATH).')

    def handle(self, *args, **options):
        csv_path = options['csv_path']
        json_path = options['json_path'] or settings.QUESTIONS_PATH

        self.stdout.write(f"Reading CSV file: {csv_path}")
        try:
            df = pd.read_csv(csv_path, dtype=str, keep_default_na=False, encoding='utf-8-sig')
        except FileNotFoundError:
            raise CommandError(f"CSV file not found: {csv_path}")
        except pd.errors.EmptyDataError:
            raise CommandError(f"CSV file is empty: {csv_path}")
        except pd.errors.ParserError as e:
            raise CommandError(f"Could not parse {csv_path}: {e}")

        self.stdout.write(f"Parsed rows: {len(df)}")
        questions = rows_to_questions(df)

        os.makedirs(os.path.dirname(os.path.abspath(json_path)), exist_ok=True)
        with open(json_path, 'w', encoding='utf-8') as f:
            json.dump(questions, f, indent=2, ensure_ascii=False)

        self.stdout.write(self.style.SUCCESS(f"Wrote {len(questions)} questions to {json_path}"))
        for q in questions:
            self.stdout.write(f"  {q['id']}: {q['question']}")
