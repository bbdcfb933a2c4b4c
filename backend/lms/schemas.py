"""Pydantic request schemas used by the service layer.

Schemas keep input shapes stable and validate payloads before any
repository is touched. `validate_input` converts pydantic failures into
the package's own `ValidationError`.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Type, TypeVar

import pydantic
from pydantic import BaseModel, Field, StrictStr, field_validator, model_validator

from .errors import ValidationError
from .models import InteractionType, QuestionType, UserRole

SchemaT = TypeVar('SchemaT', bound=BaseModel)


def _not_null(v):
    """Reject an explicit null for a field whose column is NOT NULL."""
    if v is None:
        raise ValueError('may not be null')
    return v


def _as_utc(v: Optional[datetime]) -> Optional[datetime]:
    """Read naive datetimes as UTC; aware ones are converted to UTC."""
    if v is None:
        return v
    if v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v.astimezone(timezone.utc)


def validate_input(schema: Type[SchemaT], payload) -> SchemaT:
    """Return `payload` as an instance of `schema`.

    Accepts either an existing instance (returned unchanged) or a mapping.
    Raises `ValidationError` with the pydantic error summary on failure.
    """
    if isinstance(payload, schema):
        return payload
    try:
        return schema.model_validate(payload)
    except pydantic.ValidationError as e:
        raise ValidationError(str(e)) from e


class CreateUserIn(BaseModel):
    """Payload for creating a user; the password is hashed before storage."""
    email: str = Field(pattern=r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
    password: str = Field(min_length=8)
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    role: UserRole


class UpdateUserIn(BaseModel):
    id: int
    email: Optional[str] = Field(default=None, pattern=r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
    first_name: Optional[str] = Field(default=None, min_length=1)
    last_name: Optional[str] = Field(default=None, min_length=1)
    role: Optional[UserRole] = None

    @field_validator('email', 'first_name', 'last_name', 'role')
    @classmethod
    def _required_columns(cls, v):
        return _not_null(v)


class CreateCourseIn(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    teacher_id: int


class UpdateCourseIn(BaseModel):
    id: int
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None

    @field_validator('title')
    @classmethod
    def _required_columns(cls, v):
        return _not_null(v)


class CreateLessonIn(BaseModel):
    course_id: int
    title: str = Field(min_length=1)
    content: str
    order_index: int = Field(ge=0)


class UpdateLessonIn(BaseModel):
    id: int
    title: Optional[str] = Field(default=None, min_length=1)
    content: Optional[str] = None
    order_index: Optional[int] = Field(default=None, ge=0)

    @field_validator('title', 'content', 'order_index')
    @classmethod
    def _required_columns(cls, v):
        return _not_null(v)


class CreateQuizIn(BaseModel):
    lesson_id: int
    title: str = Field(min_length=1)
    description: Optional[str] = None
    time_limit: Optional[int] = Field(default=None, gt=0)


class UpdateQuizIn(BaseModel):
    id: int
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    time_limit: Optional[int] = Field(default=None, gt=0)

    @field_validator('title')
    @classmethod
    def _required_columns(cls, v):
        return _not_null(v)


class CreateQuestionIn(BaseModel):
    """Request format for adding a single question to a quiz.

    Choice-based types need options; true/false questions default to
    `["true", "false"]` when none are supplied.
    """
    quiz_id: int
    question_text: str = Field(min_length=1)
    question_type: QuestionType
    options: Optional[List[str]] = None
    correct_answer: str = Field(min_length=1)
    points: Decimal = Field(gt=0, max_digits=5, decimal_places=2)
    order_index: int = Field(default=0, ge=0)

    @model_validator(mode='after')
    def _check_options(self):
        if self.question_type == QuestionType.TRUE_FALSE and not self.options:
            self.options = ['true', 'false']
        if self.question_type == QuestionType.MULTIPLE_CHOICE and not self.options:
            raise ValueError('multiple_choice questions require options')
        if self.options and self.question_type != QuestionType.SHORT_ANSWER:
            if self.correct_answer not in self.options:
                raise ValueError('correct_answer must be one of the options')
        return self


class UpdateQuestionIn(BaseModel):
    id: int
    question_text: Optional[str] = Field(default=None, min_length=1)
    question_type: Optional[QuestionType] = None
    options: Optional[List[str]] = None
    correct_answer: Optional[str] = Field(default=None, min_length=1)
    points: Optional[Decimal] = Field(default=None, gt=0, max_digits=5, decimal_places=2)
    order_index: Optional[int] = Field(default=None, ge=0)

    @field_validator('question_text', 'question_type', 'correct_answer', 'points', 'order_index')
    @classmethod
    def _required_columns(cls, v):
        return _not_null(v)


class SubmitQuizIn(BaseModel):
    """Request model for grading: the learner's answer mapping.

    Keys are question ids rendered as canonical decimal strings and values
    are the submitted answer text; key format is checked by
    `parse_answer_mapping` when the mapping is converted for grading.
    """
    quiz_id: int
    student_id: int
    answers: Dict[StrictStr, StrictStr]


class CreateAssignmentIn(BaseModel):
    """A naive `due_date` is taken to be UTC."""
    lesson_id: int
    title: str = Field(min_length=1)
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    max_points: Decimal = Field(gt=0, max_digits=5, decimal_places=2)

    @field_validator('due_date')
    @classmethod
    def _due_date_utc(cls, v):
        return _as_utc(v)


class UpdateAssignmentIn(BaseModel):
    id: int
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    max_points: Optional[Decimal] = Field(default=None, gt=0, max_digits=5, decimal_places=2)

    @field_validator('due_date')
    @classmethod
    def _due_date_utc(cls, v):
        return _as_utc(v)

    @field_validator('title', 'max_points')
    @classmethod
    def _required_columns(cls, v):
        return _not_null(v)


class SubmitAssignmentIn(BaseModel):
    assignment_id: int
    student_id: int
    content: Optional[str] = None
    file_path: Optional[str] = None

    @model_validator(mode='after')
    def _require_body(self):
        if not self.content and not self.file_path:
            raise ValueError('content or file_path required')
        return self


class GradeAssignmentIn(BaseModel):
    submission_id: int
    score: Decimal = Field(ge=0, max_digits=5, decimal_places=2)
    feedback: Optional[str] = None


class EnrollStudentIn(BaseModel):
    course_id: int
    student_id: int


class UpdateProgressIn(BaseModel):
    student_id: int
    lesson_id: int
    completed: bool
    time_spent_minutes: int = Field(ge=0)


class CreateAttachmentIn(BaseModel):
    lesson_id: int
    filename: str = Field(min_length=1, max_length=200)
    file_path: str = Field(min_length=1)
    file_type: str = Field(min_length=1)
    file_size: int = Field(ge=0)

    @field_validator('filename')
    @classmethod
    def _plain_filename(cls, v: str) -> str:
        if '/' in v or '\\' in v:
            raise ValueError('filename must not contain a path')
        return v


class CreateAiInteractionIn(BaseModel):
    """A student's question to the course assistant.

    `lesson_id`, when given, must belong to `course_id`.
    """
    student_id: int
    course_id: int
    lesson_id: Optional[int] = None
    question: str = Field(min_length=1)
    interaction_type: InteractionType
