"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
courses, lessons, quizzes, questions, submissions, assignments,
enrollments, progress, attachments, assistant interactions).
Repositories return SQLModel objects; `save` methods commit and refresh,
while `delete*` helpers only delete and flush so services can cascade
child-first inside one transaction and finish with `commit(session)`.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from . import models
from .errors import StorageError


def commit(session: Session) -> None:
    """Commit the session, rolling back and raising `StorageError` on failure."""
    try:
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise StorageError(str(e)) from e


class _Repository:
    model = None

    def __init__(self, session: Session):
        self.session = session

    def get(self, obj_id: int):
        """Fetch a row by primary key or `None`."""
        try:
            return self.session.get(self.model, obj_id)
        except SQLAlchemyError as e:
            raise StorageError(str(e)) from e

    def save(self, obj):
        """Persist `obj` (insert or update) and return the refreshed instance."""
        self.session.add(obj)
        commit(self.session)
        self.session.refresh(obj)
        return obj

    def _all(self, stmt) -> list:
        try:
            return list(self.session.exec(stmt).all())
        except SQLAlchemyError as e:
            raise StorageError(str(e)) from e

    def _first(self, stmt):
        try:
            return self.session.exec(stmt).first()
        except SQLAlchemyError as e:
            raise StorageError(str(e)) from e

    def _delete(self, stmt) -> None:
        """Delete every row matched by `stmt` and flush, leaving the commit to the caller."""
        try:
            for row in self.session.exec(stmt).all():
                self.session.delete(row)
            self.session.flush()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StorageError(str(e)) from e


class UserRepository(_Repository):
    """CRUD operations for `User` objects."""
    model = models.User

    def get_by_email(self, email: str) -> Optional[models.User]:
        """Return a `User` by email or `None` if not found."""
        return self._first(select(models.User).where(models.User.email == email))

    def list(self, role: Optional[models.UserRole] = None) -> List[models.User]:
        stmt = select(models.User)
        if role is not None:
            stmt = stmt.where(models.User.role == role)
        return self._all(stmt.order_by(models.User.id))


class CourseRepository(_Repository):
    model = models.Course

    def list(self) -> List[models.Course]:
        return self._all(select(models.Course).order_by(models.Course.id))

    def list_by_teacher(self, teacher_id: int) -> List[models.Course]:
        stmt = select(models.Course).where(models.Course.teacher_id == teacher_id).order_by(models.Course.id)
        return self._all(stmt)

    def delete(self, course_id: int) -> None:
        self._delete(select(models.Course).where(models.Course.id == course_id))


class LessonRepository(_Repository):
    model = models.Lesson

    def list_by_course(self, course_id: int) -> List[models.Lesson]:
        """Return a course's lessons in display order."""
        stmt = select(models.Lesson).where(models.Lesson.course_id == course_id).order_by(
            models.Lesson.order_index, models.Lesson.id
        )
        return self._all(stmt)

    def delete(self, lesson_id: int) -> None:
        self._delete(select(models.Lesson).where(models.Lesson.id == lesson_id))


class QuizRepository(_Repository):
    model = models.Quiz

    def list_by_lesson(self, lesson_id: int) -> List[models.Quiz]:
        stmt = select(models.Quiz).where(models.Quiz.lesson_id == lesson_id).order_by(models.Quiz.id)
        return self._all(stmt)

    def delete(self, quiz_id: int) -> None:
        self._delete(select(models.Quiz).where(models.Quiz.id == quiz_id))


class QuestionRepository(_Repository):
    """CRUD operations for quiz `Question` records."""
    model = models.Question

    def list_by_quiz(self, quiz_id: int) -> List[models.Question]:
        """Return all questions of `quiz_id` ordered by `order_index`.

        An unknown quiz simply yields an empty list.
        """
        stmt = select(models.Question).where(models.Question.quiz_id == quiz_id).order_by(
            models.Question.order_index, models.Question.id
        )
        return self._all(stmt)

    def delete(self, question_id: int) -> None:
        self._delete(select(models.Question).where(models.Question.id == question_id))

    def delete_by_quiz(self, quiz_id: int) -> None:
        self._delete(select(models.Question).where(models.Question.quiz_id == quiz_id))


class SubmissionRepository(_Repository):
    """Persist and query graded quiz submissions."""
    model = models.QuizSubmission

    def insert_submission(
        self,
        quiz_id: int,
        student_id: int,
        answers: Dict[str, str],
        score: Decimal,
        submitted_at: Optional[datetime] = None,
    ) -> models.QuizSubmission:
        """Insert one submission row and return it with its assigned id.

        Constraint violations (e.g. an unknown foreign key) roll the
        session back and surface as `StorageError`.
        """
        sub = models.QuizSubmission(quiz_id=quiz_id, student_id=student_id, answers=answers, score=score)
        if submitted_at is not None:
            sub.submitted_at = submitted_at
        return self.save(sub)

    def list_by_quiz(self, quiz_id: int) -> List[models.QuizSubmission]:
        stmt = select(models.QuizSubmission).where(models.QuizSubmission.quiz_id == quiz_id).order_by(
            models.QuizSubmission.submitted_at.desc(), models.QuizSubmission.id.desc()
        )
        return self._all(stmt)

    def list_by_student(self, student_id: int) -> List[models.QuizSubmission]:
        stmt = select(models.QuizSubmission).where(models.QuizSubmission.student_id == student_id).order_by(
            models.QuizSubmission.submitted_at.desc(), models.QuizSubmission.id.desc()
        )
        return self._all(stmt)

    def delete_by_quiz(self, quiz_id: int) -> None:
        self._delete(select(models.QuizSubmission).where(models.QuizSubmission.quiz_id == quiz_id))


class AssignmentRepository(_Repository):
    model = models.Assignment

    def list_by_lesson(self, lesson_id: int) -> List[models.Assignment]:
        stmt = select(models.Assignment).where(models.Assignment.lesson_id == lesson_id).order_by(models.Assignment.id)
        return self._all(stmt)

    def delete(self, assignment_id: int) -> None:
        self._delete(select(models.Assignment).where(models.Assignment.id == assignment_id))


class AssignmentSubmissionRepository(_Repository):
    model = models.AssignmentSubmission

    def get_for_student(self, assignment_id: int, student_id: int) -> Optional[models.AssignmentSubmission]:
        stmt = select(models.AssignmentSubmission).where(
            models.AssignmentSubmission.assignment_id == assignment_id,
            models.AssignmentSubmission.student_id == student_id
        )
        return self._first(stmt)

    def list_by_assignment(self, assignment_id: int) -> List[models.AssignmentSubmission]:
        stmt = select(models.AssignmentSubmission).where(
            models.AssignmentSubmission.assignment_id == assignment_id
        ).order_by(models.AssignmentSubmission.id)
        return self._all(stmt)

    def list_by_student(self, student_id: int) -> List[models.AssignmentSubmission]:
        stmt = select(models.AssignmentSubmission).where(
            models.AssignmentSubmission.student_id == student_id
        ).order_by(models.AssignmentSubmission.id)
        return self._all(stmt)

    def delete_by_assignment(self, assignment_id: int) -> None:
        self._delete(select(models.AssignmentSubmission).where(
            models.AssignmentSubmission.assignment_id == assignment_id
        ))


class EnrollmentRepository(_Repository):
    model = models.CourseEnrollment

    def get_for_student(self, course_id: int, student_id: int) -> Optional[models.CourseEnrollment]:
        stmt = select(models.CourseEnrollment).where(
            models.CourseEnrollment.course_id == course_id,
            models.CourseEnrollment.student_id == student_id
        )
        return self._first(stmt)

    def list_by_student(self, student_id: int) -> List[models.CourseEnrollment]:
        stmt = select(models.CourseEnrollment).where(
            models.CourseEnrollment.student_id == student_id
        ).order_by(models.CourseEnrollment.id)
        return self._all(stmt)

    def delete_by_course(self, course_id: int) -> None:
        self._delete(select(models.CourseEnrollment).where(models.CourseEnrollment.course_id == course_id))


class ProgressRepository(_Repository):
    """Upsert-style access to `LessonProgress` rows."""
    model = models.LessonProgress

    def get_for_student(self, student_id: int, lesson_id: int) -> Optional[models.LessonProgress]:
        stmt = select(models.LessonProgress).where(
            models.LessonProgress.student_id == student_id,
            models.LessonProgress.lesson_id == lesson_id
        )
        return self._first(stmt)

    def list_for_student(self, student_id: int, course_id: Optional[int] = None) -> List[models.LessonProgress]:
        """Return a student's progress rows, optionally limited to one course."""
        stmt = select(models.LessonProgress).where(models.LessonProgress.student_id == student_id)
        if course_id is not None:
            stmt = stmt.join(models.Lesson, models.Lesson.id == models.LessonProgress.lesson_id).where(
                models.Lesson.course_id == course_id
            )
        return self._all(stmt.order_by(models.LessonProgress.id))

    def delete_by_lesson(self, lesson_id: int) -> None:
        self._delete(select(models.LessonProgress).where(models.LessonProgress.lesson_id == lesson_id))


class AttachmentRepository(_Repository):
    model = models.FileAttachment

    def list_by_lesson(self, lesson_id: int) -> List[models.FileAttachment]:
        stmt = select(models.FileAttachment).where(models.FileAttachment.lesson_id == lesson_id).order_by(
            models.FileAttachment.id
        )
        return self._all(stmt)

    def delete(self, attachment_id: int) -> None:
        self._delete(select(models.FileAttachment).where(models.FileAttachment.id == attachment_id))

    def delete_by_lesson(self, lesson_id: int) -> None:
        self._delete(select(models.FileAttachment).where(models.FileAttachment.lesson_id == lesson_id))


class AiInteractionRepository(_Repository):
    model = models.AiInteraction

    def list_for_student(self, student_id: int, course_id: Optional[int] = None) -> List[models.AiInteraction]:
        """Return a student's interactions, newest first, optionally for one course."""
        stmt = select(models.AiInteraction).where(models.AiInteraction.student_id == student_id)
        if course_id is not None:
            stmt = stmt.where(models.AiInteraction.course_id == course_id)
        return self._all(stmt.order_by(models.AiInteraction.created_at.desc(), models.AiInteraction.id.desc()))

    def delete_by_course(self, course_id: int) -> None:
        self._delete(select(models.AiInteraction).where(models.AiInteraction.course_id == course_id))

    def delete_by_lesson(self, lesson_id: int) -> None:
        self._delete(select(models.AiInteraction).where(models.AiInteraction.lesson_id == lesson_id))
