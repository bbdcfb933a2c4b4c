"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Each class maps to a table; ownership follows the course hierarchy
(course -> lesson -> quiz/assignment/attachment) through plain foreign
keys; services resolve parents explicitly. Points and scores are stored
as exact decimals (`Numeric(5, 2)`), never binary floats.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from sqlalchemy import JSON, Column, Numeric, Text, UniqueConstraint
from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRole(str, Enum):
    STUDENT = "student"
    TEACHER = "teacher"
    ADMINISTRATOR = "administrator"


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    SHORT_ANSWER = "short_answer"


class InteractionType(str, Enum):
    QUESTION_ANSWER = "question_answer"
    KNOWLEDGE_RECALL = "knowledge_recall"
    QUIZ_GENERATION = "quiz_generation"


class User(SQLModel, table=True):
    """A registered user.

    Fields:
    - `email`: unique login name
    - `password_hash`: hashed password string (never store plaintext)
    - `role`: one of `UserRole`
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    first_name: str
    last_name: str
    role: UserRole = Field(index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Course(SQLModel, table=True):
    """A course taught by a single teacher."""
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    description: Optional[str] = None
    teacher_id: int = Field(foreign_key='user.id', index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Lesson(SQLModel, table=True):
    """An ordered unit of content inside a `Course`."""
    id: Optional[int] = Field(default=None, primary_key=True)
    course_id: int = Field(foreign_key='course.id', index=True)
    title: str
    content: str
    order_index: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Quiz(SQLModel, table=True):
    """A named collection of questions attached to a lesson."""
    id: Optional[int] = Field(default=None, primary_key=True)
    lesson_id: int = Field(foreign_key='lesson.id', index=True)
    title: str
    description: Optional[str] = None
    time_limit: Optional[int] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Question(SQLModel, table=True):
    """A single gradable item with a correct answer and point weight.

    `options` holds the ordered choices for choice-based question types
    and is `None` for short answers.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    quiz_id: int = Field(foreign_key='quiz.id', index=True)
    question_text: str
    question_type: QuestionType
    options: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    correct_answer: str
    points: Decimal = Field(sa_column=Column(Numeric(5, 2), nullable=False))
    order_index: int = 0
    created_at: datetime = Field(default_factory=utcnow)


class QuizSubmission(SQLModel, table=True):
    """A learner's graded attempt at a quiz, recorded once.

    `answers` is the submitted mapping exactly as received, keyed by the
    question id rendered as a string.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    quiz_id: int = Field(foreign_key='quiz.id', index=True)
    student_id: int = Field(foreign_key='user.id', index=True)
    answers: Dict[str, str] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    score: Optional[Decimal] = Field(default=None, sa_column=Column(Numeric(7, 2)))
    submitted_at: datetime = Field(default_factory=utcnow)


class Assignment(SQLModel, table=True):
    """Free-form work attached to a lesson and graded by a teacher."""
    id: Optional[int] = Field(default=None, primary_key=True)
    lesson_id: int = Field(foreign_key='lesson.id', index=True)
    title: str
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    max_points: Decimal = Field(sa_column=Column(Numeric(5, 2), nullable=False))
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class AssignmentSubmission(SQLModel, table=True):
    """A student's hand-in for an `Assignment`; graded later."""
    __table_args__ = (UniqueConstraint('assignment_id', 'student_id'),)

    id: Optional[int] = Field(default=None, primary_key=True)
    assignment_id: int = Field(foreign_key='assignment.id', index=True)
    student_id: int = Field(foreign_key='user.id', index=True)
    content: Optional[str] = None
    file_path: Optional[str] = None
    score: Optional[Decimal] = Field(default=None, sa_column=Column(Numeric(5, 2)))
    feedback: Optional[str] = None
    submitted_at: datetime = Field(default_factory=utcnow)
    graded_at: Optional[datetime] = None


class CourseEnrollment(SQLModel, table=True):
    __table_args__ = (UniqueConstraint('course_id', 'student_id'),)

    id: Optional[int] = Field(default=None, primary_key=True)
    course_id: int = Field(foreign_key='course.id', index=True)
    student_id: int = Field(foreign_key='user.id', index=True)
    enrolled_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None


class LessonProgress(SQLModel, table=True):
    """Per-student completion state for one lesson."""
    __table_args__ = (UniqueConstraint('student_id', 'lesson_id'),)

    id: Optional[int] = Field(default=None, primary_key=True)
    student_id: int = Field(foreign_key='user.id', index=True)
    lesson_id: int = Field(foreign_key='lesson.id', index=True)
    completed: bool = False
    completed_at: Optional[datetime] = None
    time_spent_minutes: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class FileAttachment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    lesson_id: int = Field(foreign_key='lesson.id', index=True)
    filename: str
    file_path: str
    file_type: str
    file_size: int
    uploaded_at: datetime = Field(default_factory=utcnow)


class AiInteraction(SQLModel, table=True):
    """One exchange between a student and the course assistant.

    `lesson_id` is optional and, when set, points at a lesson of the same
    course.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    student_id: int = Field(foreign_key='user.id', index=True)
    course_id: int = Field(foreign_key='course.id', index=True)
    lesson_id: Optional[int] = Field(default=None, foreign_key='lesson.id', index=True)
    question: str = Field(sa_column=Column(Text, nullable=False))
    response: str = Field(sa_column=Column(Text, nullable=False))
    interaction_type: InteractionType
    created_at: datetime = Field(default_factory=utcnow)
