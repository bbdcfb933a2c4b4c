"""CLI script to seed a small demo course into the backend DB.
Usage: python scripts/seed_demo.py [--submit Q1_ANSWER Q2_ANSWER]
"""
import sys
import argparse
import json
import pathlib
from typing import Optional, List
# Ensure `backend/` is on sys.path so `lms` package imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from lms.config import configure_logging
from lms.database import engine, create_db_and_tables
from lms.errors import LMSError
from lms import repositories, services

DEMO_PASSWORD = 'demo-password'


def _get_or_create_user(session: Session, email: str, first: str, last: str, role: str):
    existing = repositories.UserRepository(session).get_by_email(email)
    if existing:
        return existing
    return services.UserService(session).create_user({
        'email': email, 'password': DEMO_PASSWORD, 'first_name': first, 'last_name': last, 'role': role,
    })


def main(submit: Optional[List[str]] = None):
    """Create a teacher, a student and one course with a two-question quiz.

    When `submit` holds two answers they are graded against the quiz and
    the resulting submission is printed as JSON.
    """
    configure_logging()
    create_db_and_tables()
    with Session(engine) as session:
        teacher = _get_or_create_user(session, 'teacher@demo.local', 'Demo', 'Teacher', 'teacher')
        student = _get_or_create_user(session, 'student@demo.local', 'Demo', 'Student', 'student')
        course = services.CourseService(session).create_course({
            'title': 'Demo Course', 'description': 'Seeded demo content', 'teacher_id': teacher.id,
        })
        services.EnrollmentService(session).enroll_student({'course_id': course.id, 'student_id': student.id})
        lesson = services.LessonService(session).create_lesson({
            'course_id': course.id, 'title': 'Arithmetic', 'content': 'Numbers and facts.', 'order_index': 1,
        })
        quizzes = services.QuizService(session)
        quiz = quizzes.create_quiz({'lesson_id': lesson.id, 'title': 'Warm-up', 'time_limit': 10})
        q1 = quizzes.create_question({
            'quiz_id': quiz.id, 'question_text': 'What is 2 + 2?', 'question_type': 'multiple_choice',
            'options': ['2', '3', '4', '5'], 'correct_answer': '4', 'points': 10, 'order_index': 1,
        })
        q2 = quizzes.create_question({
            'quiz_id': quiz.id, 'question_text': 'Is the sky blue?', 'question_type': 'true_false',
            'correct_answer': 'true', 'points': 5, 'order_index': 2,
        })
        print(f'Seeded course {course.id}, lesson {lesson.id}, quiz {quiz.id} (questions {q1.id}, {q2.id})')
        print(f'Users: {teacher.email} / {student.email} (password: {DEMO_PASSWORD})')
        if submit:
            answers = {str(q1.id): submit[0], str(q2.id): submit[1]}
            try:
                sub = services.GradingService(session).submit_quiz(quiz.id, student.id, answers)
            except LMSError as e:
                print(f'Submission failed: {e}')
                return 1
            print(json.dumps({
                'submission_id': sub.id,
                'score': str(sub.score),
                'answers': sub.answers,
                'submitted_at': sub.submitted_at.isoformat(),
            }, indent=2))
    return 0


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--submit', nargs=2, metavar=('Q1_ANSWER', 'Q2_ANSWER'),
                        help='Grade a sample submission for the seeded quiz')
    args = parser.parse_args()
    sys.exit(main(submit=args.submit))
