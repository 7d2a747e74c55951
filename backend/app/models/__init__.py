from app.models.user import User, UserRole
from app.models.test_type import TestType
from app.models.question import Question, QuestionType
from app.models.result import TestResult, TestResultAnswer
from app.models.leaderboard import LeaderboardEntry

__all__ = [
    "User",
    "UserRole",
    "TestType",
    "Question",
    "QuestionType",
    "TestResult",
    "TestResultAnswer",
    "LeaderboardEntry",
]
