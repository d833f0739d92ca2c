"""Typed records for plans, lessons and quizzes.

Field names are snake_case in Python and camelCase on the wire, matching the
JSON the model is asked to produce and the ``plan_data`` stored with a plan.
"""
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

LEVELS = ("beginner", "intermediate", "advanced")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class Subtopic(CamelModel):
    id: str
    title: str
    explanation: str = ""
    key_points: list[str] = Field(default_factory=list)
    estimated_time: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        # Models sometimes emit numeric ids.
        return str(value) if isinstance(value, int) else value


class DayPlan(CamelModel):
    day: int = Field(..., ge=1)
    title: str
    subtopics: list[Subtopic] = Field(default_factory=list)
    objectives: list[str] = Field(default_factory=list)


class LearningPlan(CamelModel):
    topic: str
    total_days: int = Field(..., ge=1)
    level: Literal["beginner", "intermediate", "advanced"]
    daily_time: str
    days: list[DayPlan] = Field(..., min_length=1)

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


class QuizQuestion(CamelModel):
    id: str
    type: Literal["mcq", "theory"]
    question: str
    options: Optional[list[str]] = None
    correct_answer: Optional[str] = None
    points: int = Field(..., ge=0)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        return str(value) if isinstance(value, int) else value


class QuizPayload(BaseModel):
    questions: list[QuizQuestion]


class TheoryGrade(CamelModel):
    score: float
    feedback: str
    ideal_answer: str = ""

    @field_validator("score")
    @classmethod
    def _clamp_score(cls, value: float) -> float:
        return min(max(value, 0.0), 10.0)


class GradedAnswer(CamelModel):
    question_id: str
    user_answer: str
    score: int
    max_score: int
    feedback: str
    ideal_answer: Optional[str] = None
    correct_answer: Optional[str] = None
