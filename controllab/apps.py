import logging

from django.apps import AppConfig

logger = logging.getLogger(__name__)


class ControlLabAppConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'controllab'

    def ready(self):
        # Load the question dataset once when Django starts so the first
        # request does not pay for reading the file.
        from questions.catalog import load_questions
        questions = load_questions()
        logger.info("[ControlLab App Config] Question catalog ready with %d questions.", len(questions))
