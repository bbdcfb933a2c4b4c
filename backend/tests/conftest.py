import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session

from lms import services
from lms.database import create_db_and_tables, make_engine


@pytest.fixture()
def engine():
    """Fresh in-memory SQLite database per test."""
    eng = make_engine("sqlite://", poolclass=StaticPool)
    create_db_and_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session(engine):
    with Session(engine) as s:
        yield s


@pytest.fixture()
def teacher(session):
    return services.UserService(session).create_user({
        'email': 'teacher@test.com', 'password': 'password123',
        'first_name': 'Test', 'last_name': 'Teacher', 'role': 'teacher',
    })


@pytest.fixture()
def student(session):
    return services.UserService(session).create_user({
        'email': 'student@test.com', 'password': 'password123',
        'first_name': 'Test', 'last_name': 'Student', 'role': 'student',
    })


@pytest.fixture()
def course(session, teacher):
    return services.CourseService(session).create_course({
        'title': 'Test Course', 'description': 'A test course', 'teacher_id': teacher.id,
    })


@pytest.fixture()
def lesson(session, course):
    return services.LessonService(session).create_lesson({
        'course_id': course.id, 'title': 'Test Lesson', 'content': 'Test lesson content', 'order_index': 1,
    })


@pytest.fixture()
def quiz(session, lesson):
    return services.QuizService(session).create_quiz({
        'lesson_id': lesson.id, 'title': 'Test Quiz', 'description': 'A test quiz', 'time_limit': 30,
    })


@pytest.fixture()
def questions(session, quiz):
    """Two questions: 10 points for "4" and 5 points for "true"."""
    svc = services.QuizService(session)
    q1 = svc.create_question({
        'quiz_id': quiz.id, 'question_text': 'What is 2 + 2?', 'question_type': 'multiple_choice',
        'options': ['2', '3', '4', '5'], 'correct_answer': '4', 'points': 10, 'order_index': 1,
    })
    q2 = svc.create_question({
        'quiz_id': quiz.id, 'question_text': 'Is the sky blue?', 'question_type': 'true_false',
        'correct_answer': 'true', 'points': 5, 'order_index': 2,
    })
    return q1, q2
