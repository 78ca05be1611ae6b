from gradebook.models.assessment import Assessment, Option, Question, QuestionType
from gradebook.models.submission import Response, Submission

__all__ = ["Assessment", "Question", "Option", "QuestionType", "Submission", "Response"]
