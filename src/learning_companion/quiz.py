"""Quiz scoring and the per-day quiz session."""
import enum
import logging
import math
import string
import time
from typing import Callable

from learning_companion.generation import ContentGenerator, GenerationError
from learning_companion.models import GradedAnswer, QuizQuestion
from learning_companion.store import LearningStore, plan_model

logger = logging.getLogger(__name__)

QUIZ_TIME_LIMIT = 1800  # seconds


def option_letters(question: QuizQuestion) -> list[str]:
    return list(string.ascii_uppercase[: len(question.options or [])])


def grade_mcq(question: QuizQuestion, user_answer: str) -> GradedAnswer:
    is_correct = user_answer == question.correct_answer
    return GradedAnswer(
        question_id=question.id,
        user_answer=user_answer,
        correct_answer=question.correct_answer,
        score=question.points if is_correct else 0,
        max_score=question.points,
        feedback="Correct!" if is_correct else f"Incorrect. The correct answer is {question.correct_answer}",
    )


def scale_theory_score(score: float, max_points: int) -> int:
    """Map a 0-10 grade onto the question's points, rounding halves up."""
    return math.floor(score / 10 * max_points + 0.5)


def grade_theory(
    question: QuizQuestion, user_answer: str, generator: ContentGenerator, context: str
) -> GradedAnswer:
    grade = generator.grade_theory_answer(question.question, user_answer, context)
    return GradedAnswer(
        question_id=question.id,
        user_answer=user_answer,
        score=scale_theory_score(grade.score, question.points),
        max_score=question.points,
        feedback=grade.feedback,
        ideal_answer=grade.ideal_answer,
    )


def grade_answers(
    questions: list[QuizQuestion],
    user_answers: list[str],
    generator: ContentGenerator,
    context: str,
) -> tuple[list[GradedAnswer], int]:
    """Grade every answer in question order. Theory answers are graded one at a time."""
    graded = []
    for question, user_answer in zip(questions, user_answers):
        if question.type == "mcq":
            graded.append(grade_mcq(question, user_answer))
        else:
            graded.append(grade_theory(question, user_answer, generator, context))
    return graded, sum(a.score for a in graded)


def format_time(seconds: int) -> str:
    minutes, secs = divmod(max(seconds, 0), 60)
    return f"{minutes}:{secs:02d}"


def score_color(score: float, max_score: float) -> str:
    percentage = score / max_score * 100 if max_score else 0
    if percentage >= 80:
        return "green"
    elif percentage >= 60:
        return "yellow"
    return "red"


class QuizState(enum.Enum):
    LOADING = "loading"
    IN_PROGRESS = "in_progress"
    SUBMITTING = "submitting"
    COMPLETED = "completed"


class QuizStateError(RuntimeError):
    """Operation not allowed in the session's current state."""


class QuizSession:
    """One attempt at a day's quiz.

    LOADING -> COMPLETED when a stored result already exists, otherwise
    LOADING -> IN_PROGRESS -> SUBMITTING -> COMPLETED. The countdown runs while
    IN_PROGRESS; ``tick`` submits once when it reaches zero.
    """

    def __init__(
        self,
        store: LearningStore,
        generator: ContentGenerator,
        plan: dict,
        day_number: int,
        clock: Callable[[], float] = time.monotonic,
        time_limit: int = QUIZ_TIME_LIMIT,
    ):
        self.store = store
        self.generator = generator
        self.plan = plan
        self.day_number = day_number
        self.clock = clock
        self.time_limit = time_limit
        self.state = QuizState.LOADING
        self.questions: list[QuizQuestion] = []
        self.user_answers: list[str] = []
        self.current = 0
        self.result: dict | None = None
        self._started_at: float | None = None
        self._stopped_at: float | None = None
        self._timed_out = False

    @property
    def day_plan(self):
        return plan_model(self.plan).days[self.day_number - 1]

    @property
    def max_score(self) -> int:
        return sum(q.points for q in self.questions)

    def _require(self, state: QuizState) -> None:
        if self.state is not state:
            raise QuizStateError(f"quiz is {self.state.value}, expected {state.value}")

    def load(self) -> QuizState:
        self._require(QuizState.LOADING)
        existing = self.store.get_quiz_result(self.plan["id"], self.day_number)
        if existing:
            self.questions = [QuizQuestion.model_validate(q) for q in existing["questions"]]
            self.result = existing
            self.state = QuizState.COMPLETED
            return self.state

        self.questions = self.generator.generate_quiz(
            self.plan["topic"], self.day_plan, self.plan["level"]
        )
        self.user_answers = [""] * len(self.questions)
        self.current = 0
        self._started_at = self.clock()
        self.state = QuizState.IN_PROGRESS
        return self.state

    # Navigation

    @property
    def current_question(self) -> QuizQuestion:
        return self.questions[self.current]

    def answer(self, text: str) -> None:
        """Record an answer for the current question.

        Once time has run out the quiz is submitted as it stands and the
        answer is refused.
        """
        self._require(QuizState.IN_PROGRESS)
        if self.tick():
            raise QuizStateError("time is up, the quiz was submitted without this answer")
        self.user_answers[self.current] = text

    def next(self) -> None:
        self._require(QuizState.IN_PROGRESS)
        if self.current < len(self.questions) - 1:
            self.current += 1

    def previous(self) -> None:
        self._require(QuizState.IN_PROGRESS)
        if self.current > 0:
            self.current -= 1

    def go_to(self, index: int) -> None:
        self._require(QuizState.IN_PROGRESS)
        if not 0 <= index < len(self.questions):
            raise IndexError(f"question {index} out of range")
        self.current = index

    # Timer

    def time_left(self) -> int:
        if self._started_at is None:
            return self.time_limit
        end = self._stopped_at if self._stopped_at is not None else self.clock()
        return max(self.time_limit - int(end - self._started_at), 0)

    def tick(self) -> bool:
        """Submit when time has run out. Returns True if this call submitted."""
        if self.state is not QuizState.IN_PROGRESS or self._timed_out:
            return False
        if self.time_left() > 0:
            return False
        self._timed_out = True
        logger.info("Quiz time is up for day %d, submitting", self.day_number)
        self.submit()
        return True

    # Submission

    def submit(self) -> dict:
        self._require(QuizState.IN_PROGRESS)
        self.state = QuizState.SUBMITTING
        try:
            graded, total = grade_answers(
                self.questions, self.user_answers, self.generator, self.day_plan.title
            )
        except GenerationError:
            logger.error("Grading failed for day %d quiz", self.day_number)
            self.state = QuizState.IN_PROGRESS
            raise
        self.store.save_quiz_result(self.plan["id"], self.day_number, self.questions, graded, total)
        self._stopped_at = self.clock()
        self.result = {
            "score": total,
            "total_questions": len(self.questions),
            "answers": [a.to_json_dict() for a in graded],
        }
        self.state = QuizState.COMPLETED
        return self.result
