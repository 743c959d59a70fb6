"""
Static catalog of experiment questions.

Each question carries the methodological features a control can match,
omit or change. The dataset is read once from ``settings.QUESTIONS_PATH``
and kept in memory; nothing writes to it at runtime.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import List

from django.conf import settings

logger = logging.getLogger(__name__)

_all_questions = None


class QuestionNotFound(LookupError):
    pass


@dataclass(frozen=True)
class Feature:
    feature: str
    description: str
    option1: str = ''
    option1_text: str = ''
    absent: str = 'N'

    @property
    def absent_allowed(self) -> bool:
        return self.absent.strip().upper() == 'Y'

    @classmethod
    def from_dict(cls, data: dict) -> 'Feature':
        return cls(
            feature=data.get('feature', ''),
            description=data.get('description', ''),
            option1=data.get('option1', '') or '',
            option1_text=data.get('option1Text', '') or '',
            absent=data.get('absent', 'N') or 'N',
        )

    def to_dict(self) -> dict:
        return {
            'feature': self.feature,
            'description': self.description,
            'option1': self.option1,
            'option1Text': self.option1_text,
            'absent': self.absent,
        }


@dataclass(frozen=True)
class Question:
    id: int
    question: str
    independent_variable: str = ''
    dependent_variable: str = ''
    features: List[Feature] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> 'Question':
        return cls(
            id=int(data['id']),
            question=data.get('question', ''),
            independent_variable=data.get('independentVariable', ''),
            dependent_variable=data.get('dependentVariable', ''),
            features=[Feature.from_dict(f) for f in data.get('methodologicalConsiderations') or []],
        )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'question': self.question,
            'independentVariable': self.independent_variable,
            'dependentVariable': self.dependent_variable,
            'methodologicalConsiderations': [f.to_dict() for f in self.features],
        }


def read_questions(path) -> List[Question]:
    with open(path, 'r', encoding='utf-8') as f:
        return [Question.from_dict(item) for item in json.load(f)]


def load_questions(reload: bool = False) -> List[Question]:
    """Return the question list, reading the JSON file on first use."""
    global _all_questions
    if _all_questions is None or reload:
        source = settings.QUESTIONS_PATH
        try:
            _all_questions = read_questions(source)
        except FileNotFoundError:
            logger.warning("[Question Catalog] Dataset not found at %s, starting with no questions.", source)
            _all_questions = []
        except (ValueError, KeyError, TypeError) as e:
            logger.error("[Question Catalog] Could not parse %s: %s", source, e)
            _all_questions = []
    return _all_questions


def get_question(question_id) -> Question:
    try:
        question_id = int(question_id)
    except (TypeError, ValueError):
        raise QuestionNotFound(f"Invalid question id: {question_id!r}")
    for question in load_questions():
        if question.id == question_id:
            return question
    raise QuestionNotFound(f"Question {question_id} not found")
