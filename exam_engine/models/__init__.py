from exam_engine.models.user import User  # noqa: F401
from exam_engine.models.exam import Exam, Question  # noqa: F401
from exam_engine.models.submission import Submission  # noqa: F401
