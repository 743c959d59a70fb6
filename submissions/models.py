from django.db import models

DEFAULT_CONTROL_NAME = 'NEW CONTROL'


class Submission(models.Model):
    """One student-authored control column for one question."""
    question_id = models.IntegerField(db_index=True)
    new_control_selections = models.JSONField()
    control_name = models.CharField(max_length=255, default=DEFAULT_CONTROL_NAME)
    # NULL marks rows stored before sessions existed.
    session_id = models.CharField(max_length=255, null=True, blank=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"Submission(q={self.question_id}, name={self.control_name!r}, session={self.session_id})"

    def to_document(self):
        doc = {
            '_id': str(self.pk),
            'questionId': self.question_id,
            'newControlSelections': self.new_control_selections,
            'controlName': self.control_name,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }
        if self.session_id is not None:
            doc['sessionId'] = self.session_id
        return doc
