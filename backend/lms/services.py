"""Business logic services used by callers of the backend.

This module holds small service classes that coordinate repositories
and auxiliary logic. Services are intentionally thin: they validate the
input schema, check that referenced records exist, execute domain logic
and persist aggregates via repositories.

Authorization is not decided here; callers gate access before invoking
a service. Role checks below only guard data integrity (a course's
owner must be a teacher, an enrollment must point at a student).
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

from passlib.context import CryptContext
from sqlmodel import Session

from . import models, repositories
from .config import settings
from .errors import NotFoundError, ValidationError
from .grading import score_answers
from .schemas import (
    CreateAiInteractionIn,
    CreateAssignmentIn,
    CreateAttachmentIn,
    CreateCourseIn,
    CreateLessonIn,
    CreateQuestionIn,
    CreateQuizIn,
    CreateUserIn,
    EnrollStudentIn,
    GradeAssignmentIn,
    SubmitAssignmentIn,
    SubmitQuizIn,
    UpdateAssignmentIn,
    UpdateCourseIn,
    UpdateLessonIn,
    UpdateProgressIn,
    UpdateQuestionIn,
    UpdateQuizIn,
    UpdateUserIn,
    validate_input,
)
from .utils.answers import parse_answer_mapping

PWD_CTX = CryptContext(schemes=[settings.PASSWORD_SCHEME], deprecated="auto")

logger = logging.getLogger("lms.services")


def _log_event(name: str, **fields) -> None:
    logger.info("%s %s", name, json.dumps(fields, ensure_ascii=True, default=str))


def _require(obj, entity: str, obj_id):
    if obj is None:
        raise NotFoundError(entity, obj_id)
    return obj


def _apply_updates(obj, updates: dict, touch: bool = True):
    for field, value in updates.items():
        setattr(obj, field, value)
    if touch:
        obj.updated_at = models.utcnow()
    return obj


def _purge_quiz(session: Session, quiz_id: int) -> None:
    """Delete a quiz's submissions, questions and the quiz row (no commit)."""
    repositories.SubmissionRepository(session).delete_by_quiz(quiz_id)
    repositories.QuestionRepository(session).delete_by_quiz(quiz_id)
    repositories.QuizRepository(session).delete(quiz_id)


def _purge_assignment(session: Session, assignment_id: int) -> None:
    repositories.AssignmentSubmissionRepository(session).delete_by_assignment(assignment_id)
    repositories.AssignmentRepository(session).delete(assignment_id)


def _purge_lesson(session: Session, lesson_id: int) -> None:
    """Delete everything hanging off a lesson, then the lesson itself."""
    for quiz in repositories.QuizRepository(session).list_by_lesson(lesson_id):
        _purge_quiz(session, quiz.id)
    for assignment in repositories.AssignmentRepository(session).list_by_lesson(lesson_id):
        _purge_assignment(session, assignment.id)
    repositories.AttachmentRepository(session).delete_by_lesson(lesson_id)
    repositories.ProgressRepository(session).delete_by_lesson(lesson_id)
    repositories.AiInteractionRepository(session).delete_by_lesson(lesson_id)
    repositories.LessonRepository(session).delete(lesson_id)


class UserService:
    """User records: creation with a hashed password, lookups and updates."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def create_user(self, payload) -> models.User:
        """Create a new user with a hashed password.

        Returns the persisted `User` instance. Raises `ValidationError`
        when the email is already registered.
        """
        data = validate_input(CreateUserIn, payload)
        if self.user_repo.get_by_email(data.email):
            raise ValidationError(f"email already registered: {data.email}")
        user = models.User(
            email=data.email,
            password_hash=PWD_CTX.hash(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            role=data.role,
        )
        user = self.user_repo.save(user)
        _log_event("user_created", user_id=user.id, role=user.role.value)
        return user

    def verify_password(self, user: models.User, password: str) -> bool:
        """Check `password` against the stored hash."""
        return PWD_CTX.verify(password, user.password_hash)

    def get_user(self, user_id: int) -> models.User:
        return _require(self.user_repo.get(user_id), "user", user_id)

    def list_users(self, role: Optional[models.UserRole] = None) -> List[models.User]:
        return self.user_repo.list(role)

    def update_user(self, payload) -> models.User:
        """Apply a partial update; only fields present in the payload change."""
        data = validate_input(UpdateUserIn, payload)
        user = self.get_user(data.id)
        updates = data.model_dump(exclude_unset=True, exclude={"id"})
        if "email" in updates and updates["email"] != user.email:
            if self.user_repo.get_by_email(updates["email"]):
                raise ValidationError(f"email already registered: {updates['email']}")
        return self.user_repo.save(_apply_updates(user, updates))

    def update_user_role(self, user_id: int, role: models.UserRole) -> models.User:
        user = self.get_user(user_id)
        try:
            user.role = models.UserRole(role)
        except ValueError as e:
            raise ValidationError(f"unknown role: {role}") from e
        user.updated_at = models.utcnow()
        user = self.user_repo.save(user)
        _log_event("user_role_changed", user_id=user.id, role=user.role.value)
        return user


class CourseService:
    """Courses and their cascading deletion."""
    def __init__(self, session: Session):
        self.session = session
        self.course_repo = repositories.CourseRepository(session)
        self.user_repo = repositories.UserRepository(session)

    def create_course(self, payload) -> models.Course:
        data = validate_input(CreateCourseIn, payload)
        teacher = _require(self.user_repo.get(data.teacher_id), "teacher", data.teacher_id)
        if teacher.role != models.UserRole.TEACHER:
            raise ValidationError(f"user {teacher.id} is not a teacher")
        course = models.Course(title=data.title, description=data.description, teacher_id=teacher.id)
        return self.course_repo.save(course)

    def get_course(self, course_id: int) -> models.Course:
        return _require(self.course_repo.get(course_id), "course", course_id)

    def list_courses(self) -> List[models.Course]:
        return self.course_repo.list()

    def list_courses_by_teacher(self, teacher_id: int) -> List[models.Course]:
        return self.course_repo.list_by_teacher(teacher_id)

    def update_course(self, payload) -> models.Course:
        data = validate_input(UpdateCourseIn, payload)
        course = self.get_course(data.id)
        return self.course_repo.save(_apply_updates(course, data.model_dump(exclude_unset=True, exclude={"id"})))

    def delete_course(self, course_id: int) -> None:
        """Delete a course with its lessons, enrollments and everything below.

        All rows go in a single transaction; on failure nothing is removed.
        """
        self.get_course(course_id)
        lessons = repositories.LessonRepository(self.session).list_by_course(course_id)
        for lesson in lessons:
            _purge_lesson(self.session, lesson.id)
        repositories.AiInteractionRepository(self.session).delete_by_course(course_id)
        repositories.EnrollmentRepository(self.session).delete_by_course(course_id)
        self.course_repo.delete(course_id)
        repositories.commit(self.session)
        _log_event("course_deleted", course_id=course_id, lessons=len(lessons))


class LessonService:
    def __init__(self, session: Session):
        self.session = session
        self.lesson_repo = repositories.LessonRepository(session)
        self.course_repo = repositories.CourseRepository(session)

    def create_lesson(self, payload) -> models.Lesson:
        data = validate_input(CreateLessonIn, payload)
        _require(self.course_repo.get(data.course_id), "course", data.course_id)
        lesson = models.Lesson(**data.model_dump())
        return self.lesson_repo.save(lesson)

    def get_lesson(self, lesson_id: int) -> models.Lesson:
        return _require(self.lesson_repo.get(lesson_id), "lesson", lesson_id)

    def list_lessons(self, course_id: int) -> List[models.Lesson]:
        """Return a course's lessons ordered by `order_index`."""
        return self.lesson_repo.list_by_course(course_id)

    def update_lesson(self, payload) -> models.Lesson:
        data = validate_input(UpdateLessonIn, payload)
        lesson = self.get_lesson(data.id)
        return self.lesson_repo.save(_apply_updates(lesson, data.model_dump(exclude_unset=True, exclude={"id"})))

    def delete_lesson(self, lesson_id: int) -> None:
        self.get_lesson(lesson_id)
        _purge_lesson(self.session, lesson_id)
        repositories.commit(self.session)
        _log_event("lesson_deleted", lesson_id=lesson_id)


class QuizService:
    """Quizzes and the questions they own."""
    def __init__(self, session: Session):
        self.session = session
        self.quiz_repo = repositories.QuizRepository(session)
        self.q_repo = repositories.QuestionRepository(session)
        self.lesson_repo = repositories.LessonRepository(session)

    def create_quiz(self, payload) -> models.Quiz:
        data = validate_input(CreateQuizIn, payload)
        _require(self.lesson_repo.get(data.lesson_id), "lesson", data.lesson_id)
        return self.quiz_repo.save(models.Quiz(**data.model_dump()))

    def get_quiz(self, quiz_id: int) -> models.Quiz:
        return _require(self.quiz_repo.get(quiz_id), "quiz", quiz_id)

    def list_quizzes(self, lesson_id: int) -> List[models.Quiz]:
        return self.quiz_repo.list_by_lesson(lesson_id)

    def update_quiz(self, payload) -> models.Quiz:
        data = validate_input(UpdateQuizIn, payload)
        quiz = self.get_quiz(data.id)
        return self.quiz_repo.save(_apply_updates(quiz, data.model_dump(exclude_unset=True, exclude={"id"})))

    def delete_quiz(self, quiz_id: int) -> None:
        """Delete a quiz together with its submissions and questions."""
        self.get_quiz(quiz_id)
        _purge_quiz(self.session, quiz_id)
        repositories.commit(self.session)
        _log_event("quiz_deleted", quiz_id=quiz_id)

    def create_question(self, payload) -> models.Question:
        data = validate_input(CreateQuestionIn, payload)
        self.get_quiz(data.quiz_id)
        return self.q_repo.save(models.Question(**data.model_dump()))

    def get_question(self, question_id: int) -> models.Question:
        return _require(self.q_repo.get(question_id), "question", question_id)

    def list_questions(self, quiz_id: int) -> List[models.Question]:
        """Return a quiz's questions in display order."""
        return self.q_repo.list_by_quiz(quiz_id)

    def update_question(self, payload) -> models.Question:
        """Apply a partial update to a question.

        The resulting question must still be gradable: choice-based types
        keep their options and the correct answer stays among them.
        """
        data = validate_input(UpdateQuestionIn, payload)
        question = self.get_question(data.id)
        updates = data.model_dump(exclude_unset=True, exclude={"id"})
        merged = {
            "quiz_id": question.quiz_id,
            "question_text": question.question_text,
            "question_type": question.question_type,
            "options": question.options,
            "correct_answer": question.correct_answer,
            "points": question.points,
            "order_index": question.order_index,
            **updates,
        }
        checked = validate_input(CreateQuestionIn, merged)
        updates["options"] = checked.options
        return self.q_repo.save(_apply_updates(question, updates, touch=False))

    def delete_question(self, question_id: int) -> None:
        self.get_question(question_id)
        self.q_repo.delete(question_id)
        repositories.commit(self.session)


class GradingService:
    """Grade submitted quizzes and persist the resulting submissions."""
    def __init__(self, session: Session):
        self.session = session
        self.quiz_repo = repositories.QuizRepository(session)
        self.q_repo = repositories.QuestionRepository(session)
        self.user_repo = repositories.UserRepository(session)
        self.sub_repo = repositories.SubmissionRepository(session)

    def submit_quiz(self, quiz_id: int, student_id: int, answers: Dict[str, str]) -> models.QuizSubmission:
        """Grade `answers` against the quiz's questions and record the attempt.

        `answers` maps question ids (as strings) to the submitted answer.
        A question earns its points only when the answer equals the stored
        correct answer exactly; no trimming, no case folding. Keys that
        match no question are ignored for scoring but kept in the stored
        mapping, which is saved exactly as received.

        Raises `ValidationError` for a malformed mapping, `NotFoundError`
        for an unknown quiz or learner and `StorageError` if the insert
        fails. Exactly one submission row is created on success.
        """
        data = validate_input(SubmitQuizIn, {"quiz_id": quiz_id, "student_id": student_id, "answers": answers})
        by_question = parse_answer_mapping(data.answers)
        _require(self.quiz_repo.get(data.quiz_id), "quiz", data.quiz_id)
        _require(self.user_repo.get(data.student_id), "user", data.student_id)
        questions = self.q_repo.list_by_quiz(data.quiz_id)
        score = score_answers(questions, by_question)
        try:
            submission = self.sub_repo.insert_submission(data.quiz_id, data.student_id, dict(data.answers), score)
        except Exception:
            logger.exception("quiz_submission_failed %s", json.dumps(
                {"quiz_id": data.quiz_id, "student_id": data.student_id}, ensure_ascii=True
            ))
            raise
        _log_event(
            "quiz_submitted",
            submission_id=submission.id,
            quiz_id=submission.quiz_id,
            student_id=submission.student_id,
            score=submission.score,
            questions=len(questions),
            answered=len(by_question),
        )
        return submission

    def get_submission(self, submission_id: int) -> models.QuizSubmission:
        return _require(self.sub_repo.get(submission_id), "submission", submission_id)

    def list_submissions_by_quiz(self, quiz_id: int) -> List[models.QuizSubmission]:
        """Newest submissions first."""
        return self.sub_repo.list_by_quiz(quiz_id)

    def list_submissions_by_student(self, student_id: int) -> List[models.QuizSubmission]:
        return self.sub_repo.list_by_student(student_id)


class AssignmentService:
    """Assignments, hand-ins and teacher grading."""
    def __init__(self, session: Session):
        self.session = session
        self.assignment_repo = repositories.AssignmentRepository(session)
        self.sub_repo = repositories.AssignmentSubmissionRepository(session)
        self.lesson_repo = repositories.LessonRepository(session)
        self.user_repo = repositories.UserRepository(session)

    def create_assignment(self, payload) -> models.Assignment:
        data = validate_input(CreateAssignmentIn, payload)
        _require(self.lesson_repo.get(data.lesson_id), "lesson", data.lesson_id)
        return self.assignment_repo.save(models.Assignment(**data.model_dump()))

    def get_assignment(self, assignment_id: int) -> models.Assignment:
        return _require(self.assignment_repo.get(assignment_id), "assignment", assignment_id)

    def list_assignments(self, lesson_id: int) -> List[models.Assignment]:
        return self.assignment_repo.list_by_lesson(lesson_id)

    def update_assignment(self, payload) -> models.Assignment:
        data = validate_input(UpdateAssignmentIn, payload)
        assignment = self.get_assignment(data.id)
        updates = data.model_dump(exclude_unset=True, exclude={"id"})
        return self.assignment_repo.save(_apply_updates(assignment, updates))

    def delete_assignment(self, assignment_id: int) -> None:
        self.get_assignment(assignment_id)
        _purge_assignment(self.session, assignment_id)
        repositories.commit(self.session)

    def submit_assignment(self, payload) -> models.AssignmentSubmission:
        """Record a student's hand-in; each student submits an assignment once."""
        data = validate_input(SubmitAssignmentIn, payload)
        self.get_assignment(data.assignment_id)
        student = self.user_repo.get(data.student_id)
        if student is None or student.role != models.UserRole.STUDENT:
            raise NotFoundError("student", data.student_id)
        if self.sub_repo.get_for_student(data.assignment_id, data.student_id):
            raise ValidationError(
                f"student {data.student_id} has already submitted assignment {data.assignment_id}"
            )
        return self.sub_repo.save(models.AssignmentSubmission(**data.model_dump()))

    def grade_assignment(self, payload) -> models.AssignmentSubmission:
        """Set score and feedback on a submission; the score may not exceed `max_points`."""
        data = validate_input(GradeAssignmentIn, payload)
        sub = _require(self.sub_repo.get(data.submission_id), "assignment submission", data.submission_id)
        assignment = self.get_assignment(sub.assignment_id)
        if data.score > assignment.max_points:
            raise ValidationError(f"score {data.score} exceeds max_points {assignment.max_points}")
        sub.score = data.score
        sub.feedback = data.feedback
        sub.graded_at = models.utcnow()
        sub = self.sub_repo.save(sub)
        _log_event("assignment_graded", submission_id=sub.id, score=sub.score)
        return sub

    def list_submissions(self, assignment_id: int) -> List[models.AssignmentSubmission]:
        return self.sub_repo.list_by_assignment(assignment_id)

    def list_submissions_by_student(self, student_id: int) -> List[models.AssignmentSubmission]:
        return self.sub_repo.list_by_student(student_id)


class EnrollmentService:
    def __init__(self, session: Session):
        self.session = session
        self.enroll_repo = repositories.EnrollmentRepository(session)
        self.course_repo = repositories.CourseRepository(session)
        self.user_repo = repositories.UserRepository(session)

    def enroll_student(self, payload) -> models.CourseEnrollment:
        """Enroll a student in a course; duplicates are rejected."""
        data = validate_input(EnrollStudentIn, payload)
        student = _require(self.user_repo.get(data.student_id), "student", data.student_id)
        if student.role != models.UserRole.STUDENT:
            raise ValidationError(f"user {student.id} is not a student")
        _require(self.course_repo.get(data.course_id), "course", data.course_id)
        if self.enroll_repo.get_for_student(data.course_id, data.student_id):
            raise ValidationError("student is already enrolled in this course")
        return self.enroll_repo.save(models.CourseEnrollment(course_id=data.course_id, student_id=data.student_id))

    def list_student_enrollments(self, student_id: int) -> List[dict]:
        """Return the student's enrollments with course and teacher details attached."""
        out = []
        for e in self.enroll_repo.list_by_student(student_id):
            course = self.course_repo.get(e.course_id)
            teacher = self.user_repo.get(course.teacher_id)
            out.append({
                'id': e.id,
                'course_id': e.course_id,
                'student_id': e.student_id,
                'enrolled_at': e.enrolled_at,
                'completed_at': e.completed_at,
                'course_title': course.title,
                'course_description': course.description,
                'teacher_name': f"{teacher.first_name} {teacher.last_name}",
                'teacher_email': teacher.email,
            })
        return out


class ProgressService:
    """Track per-lesson completion for enrolled students."""
    def __init__(self, session: Session):
        self.session = session
        self.progress_repo = repositories.ProgressRepository(session)
        self.lesson_repo = repositories.LessonRepository(session)
        self.enroll_repo = repositories.EnrollmentRepository(session)

    def update_progress(self, payload) -> models.LessonProgress:
        """Create or update the progress row for a student/lesson pair.

        The student must be enrolled in the lesson's course. Marking a
        lesson complete stamps `completed_at`; un-marking clears it.
        """
        data = validate_input(UpdateProgressIn, payload)
        lesson = _require(self.lesson_repo.get(data.lesson_id), "lesson", data.lesson_id)
        if not self.enroll_repo.get_for_student(lesson.course_id, data.student_id):
            raise ValidationError("student is not enrolled in this course")
        now = models.utcnow()
        progress = self.progress_repo.get_for_student(data.student_id, data.lesson_id)
        if progress is None:
            progress = models.LessonProgress(student_id=data.student_id, lesson_id=data.lesson_id)
        progress.completed = data.completed
        progress.completed_at = now if data.completed else None
        progress.time_spent_minutes = data.time_spent_minutes
        progress.updated_at = now
        return self.progress_repo.save(progress)

    def get_student_progress(self, student_id: int, course_id: Optional[int] = None) -> List[models.LessonProgress]:
        return self.progress_repo.list_for_student(student_id, course_id)


class AttachmentService:
    """Lesson file attachments; files themselves live under `ATTACHMENT_ROOT`."""
    def __init__(self, session: Session, root: Optional[Path] = None):
        self.session = session
        self.root = Path(root) if root is not None else settings.ATTACHMENT_ROOT
        self.attachment_repo = repositories.AttachmentRepository(session)
        self.lesson_repo = repositories.LessonRepository(session)

    def create_attachment(self, payload) -> models.FileAttachment:
        data = validate_input(CreateAttachmentIn, payload)
        _require(self.lesson_repo.get(data.lesson_id), "lesson", data.lesson_id)
        return self.attachment_repo.save(models.FileAttachment(**data.model_dump()))

    def list_attachments(self, lesson_id: int) -> List[models.FileAttachment]:
        return self.attachment_repo.list_by_lesson(lesson_id)

    def delete_attachment(self, attachment_id: int) -> None:
        """Delete the attachment row, then try to remove the stored file.

        A file that cannot be removed is logged and left behind; the
        record deletion still stands.
        """
        attachment = _require(self.attachment_repo.get(attachment_id), "attachment", attachment_id)
        path = Path(attachment.file_path)
        if not path.is_absolute():
            path = self.root / path
        self.attachment_repo.delete(attachment_id)
        repositories.commit(self.session)
        try:
            path.unlink()
        except OSError as e:
            logger.warning("attachment_file_not_removed %s", json.dumps(
                {"attachment_id": attachment_id, "path": str(path), "error": str(e)}, ensure_ascii=True
            ))


AI_RESPONSES = {
    models.InteractionType.QUESTION_ANSWER: (
        'Thanks for your question: "{question}". A full assistant would answer it from the '
        'course material; this placeholder stands in until one is connected.'
    ),
    models.InteractionType.KNOWLEDGE_RECALL: (
        'Recall practice for "{question}": 1) What are the key ideas of this topic? '
        '2) How would you apply them in practice? 3) What should you remember most?'
    ),
    models.InteractionType.QUIZ_GENERATION: (
        'Practice quiz for "{question}": 1) Multiple choice: which option best describes the '
        'main idea? 2) True/false: the key principle is central to this topic. '
        '3) Short answer: explain how you would use this in a real situation.'
    ),
}


class AiInteractionService:
    """Course assistant exchanges for enrolled students.

    Responses are canned per interaction type; no model is called.
    """
    def __init__(self, session: Session):
        self.session = session
        self.ai_repo = repositories.AiInteractionRepository(session)
        self.user_repo = repositories.UserRepository(session)
        self.course_repo = repositories.CourseRepository(session)
        self.lesson_repo = repositories.LessonRepository(session)
        self.enroll_repo = repositories.EnrollmentRepository(session)

    def create_ai_interaction(self, payload) -> models.AiInteraction:
        """Record a student's question with the assistant's response.

        The student must be enrolled in the course, and a given lesson
        must belong to that course.
        """
        data = validate_input(CreateAiInteractionIn, payload)
        student = self.user_repo.get(data.student_id)
        if student is None or student.role != models.UserRole.STUDENT:
            raise NotFoundError("student", data.student_id)
        _require(self.course_repo.get(data.course_id), "course", data.course_id)
        if not self.enroll_repo.get_for_student(data.course_id, data.student_id):
            raise ValidationError("student is not enrolled in this course")
        if data.lesson_id is not None:
            lesson = self.lesson_repo.get(data.lesson_id)
            if lesson is None or lesson.course_id != data.course_id:
                raise NotFoundError("lesson", data.lesson_id)
        interaction = models.AiInteraction(
            student_id=data.student_id,
            course_id=data.course_id,
            lesson_id=data.lesson_id,
            question=data.question,
            response=AI_RESPONSES[data.interaction_type].format(question=data.question),
            interaction_type=data.interaction_type,
        )
        interaction = self.ai_repo.save(interaction)
        _log_event(
            "ai_interaction_created",
            interaction_id=interaction.id,
            student_id=interaction.student_id,
            course_id=interaction.course_id,
            interaction_type=interaction.interaction_type.value,
        )
        return interaction

    def get_ai_interactions(self, student_id: int, course_id: Optional[int] = None) -> List[models.AiInteraction]:
        """Newest first."""
        return self.ai_repo.list_for_student(student_id, course_id)
