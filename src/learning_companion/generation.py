"""LLM-backed content generation: plans, quizzes, grading and tutor answers."""
import enum
import json
import logging

from groq import APIError, Groq
from pydantic import BaseModel, ValidationError

from learning_companion.config import DEFAULT_MODEL
from learning_companion.models import DayPlan, LearningPlan, QuizPayload, QuizQuestion, TheoryGrade

logger = logging.getLogger(__name__)

JSON_MODE = {"type": "json_object"}

PLAN_SYSTEM = (
    "You are an expert educational content creator and industry professional with deep "
    "expertise in technical subjects. Create comprehensive, detailed learning content that "
    "meets professional and academic standards. Write detailed explanations of 700-800 words "
    "for each subtopic. Always return valid JSON without any markdown formatting or additional text."
)
QUIZ_SYSTEM = (
    "You are an expert quiz creator. Always return valid JSON without any markdown "
    "formatting or additional text."
)
GRADER_SYSTEM = (
    "You are an expert educator providing fair and constructive assessment. "
    "Always return valid JSON."
)
TUTOR_SYSTEM = (
    "You are a patient, knowledgeable AI tutor with expertise in technical subjects. Provide "
    "clear, well-formatted explanations using proper markdown formatting. Always structure "
    "your responses professionally with appropriate formatting for code, mathematics, and "
    "technical content. Write comprehensive responses of 400-600 words."
)

PLAN_PROMPT = """Create a comprehensive {days}-day learning plan for "{topic}" at {level} level with {daily_time} daily study time.

Each subtopic explanation must be 700-800 words and cover theoretical foundations, practical
applications with real-world examples, step-by-step processes where applicable, industry best
practices, common challenges and connections to related concepts. Explain both the "what" and
the "why". Use language appropriate for the {level} level.

Return a JSON object with this exact structure:
{{
  "topic": "{topic}",
  "totalDays": {days},
  "level": "{level}",
  "dailyTime": "{daily_time}",
  "days": [
    {{
      "day": 1,
      "title": "Day title",
      "subtopics": [
        {{
          "id": "unique-id",
          "title": "Subtopic title",
          "explanation": "700-800 word explanation",
          "keyPoints": ["point 1", "point 2", "point 3", "point 4", "point 5"],
          "estimatedTime": "30 minutes"
        }}
      ],
      "objectives": ["specific measurable objective 1", "specific measurable objective 2"]
    }}
  ]
}}

Make sure:
- There are exactly {days} entries in "days", numbered from 1
- Each day has 2-3 subtopics depending on the daily time available
- Content progresses logically from fundamentals to advanced topics across days
- Each day builds on the knowledge of the previous days"""

QUIZ_PROMPT = """Generate 5 quiz questions for Day {day} of learning "{topic}" at {level} level.

Day content:
Title: {title}
Subtopics: {subtopics}

Return a JSON object with a "questions" array containing this exact structure:
{{
  "questions": [
    {{
      "id": "q1",
      "type": "mcq",
      "question": "Question text",
      "options": ["A) Option 1", "B) Option 2", "C) Option 3", "D) Option 4"],
      "correctAnswer": "A",
      "points": 2
    }},
    {{
      "id": "q2",
      "type": "theory",
      "question": "Theory question requiring explanation",
      "points": 4
    }}
  ]
}}

Requirements:
- 3 MCQ questions (2 points each)
- 2 theory questions (4 points each)
- Questions should test understanding, not just memorization
- MCQ options should be plausible but clearly distinguishable
- Theory questions should require 2-3 sentence explanations"""

GRADE_PROMPT = """Grade this theory answer and provide feedback.

Question: {question}
Context: {context}
Student Answer: {answer}

Evaluate the answer and return a JSON object with this structure:
{{
  "score": 7,
  "feedback": "Detailed feedback explaining what was good and what could be improved",
  "idealAnswer": "A comprehensive ideal answer"
}}

Scoring criteria (out of 10):
- Accuracy and correctness (40%)
- Completeness and depth (30%)
- Clarity and organization (20%)
- Use of relevant examples (10%)

Be constructive and encouraging in feedback."""

TUTOR_PROMPT = """You are an AI tutor helping a student learn "{topic}".

Current lesson context: {context}

Student question: {question}

Formatting:
- Use markdown: ## and ### headers, bullet and numbered lists, **bold** for key concepts
  and *italics* for emphasis
- Use fenced code blocks (```) for code examples and inline code (`) for technical terms
- Use $...$ for mathematical notation, e.g. $x^2 + y^2 = z^2$
- Use blockquotes (>) for important notes or warnings

Content:
- Aim for 400-600 words with step-by-step breakdowns where applicable
- Give practical examples, best practices and common pitfalls
- Connect the answer to broader concepts in the field

Provide a helpful, clear, and encouraging response."""

FALLBACK_GRADE = TheoryGrade(
    score=5,
    feedback="Unable to process your answer at this time. Please try again.",
    ideal_answer="Answer evaluation temporarily unavailable.",
)


class GenerationErrorKind(enum.Enum):
    EMPTY_RESPONSE = "empty_response"
    PARSE_FAILURE = "parse_failure"
    INVALID_SHAPE = "invalid_shape"
    REQUEST_FAILED = "request_failed"


class GenerationError(Exception):
    """The model call failed or its reply was unusable."""

    def __init__(self, kind: GenerationErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


class ContentGenerator:
    """Chat-completion wrapper producing plans, quizzes, grades and tutor answers.

    ``client`` is anything exposing ``chat.completions.create`` like ``groq.Groq``.
    When omitted, a Groq client is created on first use from ``api_key`` (or the
    ``GROQ_API_KEY`` environment variable).
    """

    def __init__(self, client=None, model: str = DEFAULT_MODEL, api_key: str = ""):
        self._client = client
        self.model = model
        self.api_key = api_key

    @property
    def client(self):
        if self._client is None:
            self._client = Groq(api_key=self.api_key or None)
        return self._client

    def _complete(
        self,
        system: str,
        prompt: str,
        temperature: float,
        max_tokens: int,
        json_mode: bool = True,
    ) -> str:
        request = {
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "model": self.model,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            request["response_format"] = JSON_MODE
        try:
            completion = self.client.chat.completions.create(**request)
        except APIError as e:
            logger.error("Chat completion request failed: %s", e)
            raise GenerationError(GenerationErrorKind.REQUEST_FAILED, str(e)) from e

        content = completion.choices[0].message.content if completion.choices else None
        if not content or not content.strip():
            logger.error("Chat completion returned no content")
            raise GenerationError(GenerationErrorKind.EMPTY_RESPONSE, "No content received from the model")
        return content

    @staticmethod
    def _parse(content: str, schema: type[BaseModel]) -> BaseModel:
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            logger.error("Model reply is not valid JSON: %s", content[:200])
            raise GenerationError(GenerationErrorKind.PARSE_FAILURE, f"Reply is not valid JSON: {e}") from e
        try:
            return schema.model_validate(data)
        except ValidationError as e:
            logger.error("Model reply does not match %s: %s", schema.__name__, e)
            raise GenerationError(
                GenerationErrorKind.INVALID_SHAPE, f"Reply does not match {schema.__name__}"
            ) from e

    def generate_plan(self, topic: str, days: int, level: str, daily_time: str) -> LearningPlan:
        prompt = PLAN_PROMPT.format(topic=topic, days=days, level=level, daily_time=daily_time)
        content = self._complete(PLAN_SYSTEM, prompt, temperature=0.7, max_tokens=8192)
        plan = self._parse(content, LearningPlan)
        if len(plan.days) != plan.total_days:
            logger.warning(
                "Plan for %r declares %d days but contains %d", topic, plan.total_days, len(plan.days)
            )
        misnumbered = [d.day for i, d in enumerate(plan.days, 1) if d.day != i]
        if misnumbered:
            logger.warning("Plan for %r has days out of position: %s", topic, misnumbered)
        logger.info("Generated %d-day plan for %r", len(plan.days), topic)
        return plan

    def generate_quiz(self, topic: str, day_plan: DayPlan, level: str) -> list[QuizQuestion]:
        """Ask for 5 questions (3 mcq + 2 theory). Fewer may come back."""
        prompt = QUIZ_PROMPT.format(
            day=day_plan.day,
            topic=topic,
            level=level,
            title=day_plan.title,
            subtopics=", ".join(s.title for s in day_plan.subtopics),
        )
        content = self._complete(QUIZ_SYSTEM, prompt, temperature=0.6, max_tokens=3000)
        return self._parse(content, QuizPayload).questions

    def grade_theory_answer(self, question: str, user_answer: str, context: str) -> TheoryGrade:
        """Score a free-text answer out of 10.

        An unreadable grading reply yields ``FALLBACK_GRADE`` instead of an
        error so one bad reply never blocks a quiz submission. Request failures
        and empty replies still raise.
        """
        prompt = GRADE_PROMPT.format(question=question, context=context, answer=user_answer)
        content = self._complete(GRADER_SYSTEM, prompt, temperature=0.3, max_tokens=1500)
        try:
            return self._parse(content, TheoryGrade)
        except GenerationError as e:
            logger.warning("Using fallback grade: %s", e.message)
            return FALLBACK_GRADE.model_copy()

    def ask_tutor(self, question: str, context: str, topic: str) -> str:
        """Free-text markdown answer to a student question."""
        prompt = TUTOR_PROMPT.format(topic=topic, context=context, question=question)
        return self._complete(TUTOR_SYSTEM, prompt, temperature=0.7, max_tokens=2500, json_mode=False)
