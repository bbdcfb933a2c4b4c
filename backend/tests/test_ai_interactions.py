from datetime import timedelta

import pytest

from lms import models, services
from lms.errors import NotFoundError, ValidationError


@pytest.fixture()
def enrolled(session, course, student):
    return services.EnrollmentService(session).enroll_student({'course_id': course.id, 'student_id': student.id})


def _ask(session, student, course, **overrides):
    data = {'student_id': student.id, 'course_id': course.id, 'lesson_id': None,
            'question': 'What is a derivative?', 'interaction_type': 'question_answer'}
    data.update(overrides)
    return services.AiInteractionService(session).create_ai_interaction(data)


def test_response_depends_on_interaction_type(session, course, lesson, student, enrolled):
    answer = _ask(session, student, course, lesson_id=lesson.id)
    recall = _ask(session, student, course, interaction_type='knowledge_recall')
    practice = _ask(session, student, course, interaction_type='quiz_generation')
    assert answer.id is not None
    assert answer.lesson_id == lesson.id
    assert answer.interaction_type == models.InteractionType.QUESTION_ANSWER
    assert len({answer.response, recall.response, practice.response}) == 3
    for interaction in (answer, recall, practice):
        assert 'What is a derivative?' in interaction.response
    assert answer.response == services.AI_RESPONSES[models.InteractionType.QUESTION_ANSWER].format(
        question='What is a derivative?'
    )


def test_student_must_exist_and_be_enrolled(session, course, student, teacher):
    with pytest.raises(ValidationError):
        _ask(session, student, course)
    services.EnrollmentService(session).enroll_student({'course_id': course.id, 'student_id': student.id})
    with pytest.raises(NotFoundError):
        _ask(session, teacher, course)
    with pytest.raises(NotFoundError):
        services.AiInteractionService(session).create_ai_interaction({
            'student_id': 999, 'course_id': course.id, 'lesson_id': None,
            'question': 'Hi', 'interaction_type': 'question_answer',
        })
    with pytest.raises(NotFoundError):
        services.AiInteractionService(session).create_ai_interaction({
            'student_id': student.id, 'course_id': 999, 'lesson_id': None,
            'question': 'Hi', 'interaction_type': 'question_answer',
        })


def test_lesson_must_belong_to_course(session, teacher, course, student, enrolled):
    other = services.CourseService(session).create_course({'title': 'Other', 'teacher_id': teacher.id})
    foreign = services.LessonService(session).create_lesson({
        'course_id': other.id, 'title': 'Elsewhere', 'content': 'x', 'order_index': 0,
    })
    with pytest.raises(NotFoundError):
        _ask(session, student, course, lesson_id=foreign.id)
    with pytest.raises(NotFoundError):
        _ask(session, student, course, lesson_id=999)


def test_input_is_validated(session, course, student, enrolled):
    with pytest.raises(ValidationError):
        _ask(session, student, course, question='')
    with pytest.raises(ValidationError):
        _ask(session, student, course, interaction_type='summarise')
    assert services.AiInteractionService(session).get_ai_interactions(student.id) == []


def test_interactions_listed_newest_first(session, teacher, course, student, enrolled):
    other = services.CourseService(session).create_course({'title': 'Other', 'teacher_id': teacher.id})
    services.EnrollmentService(session).enroll_student({'course_id': other.id, 'student_id': student.id})
    first = _ask(session, student, course, question='one')
    second = _ask(session, student, other, question='two')
    third = _ask(session, student, course, question='three')
    first.created_at = models.utcnow() + timedelta(hours=1)
    session.add(first)
    session.commit()

    svc = services.AiInteractionService(session)
    assert [i.id for i in svc.get_ai_interactions(student.id)] == [first.id, third.id, second.id]
    assert [i.id for i in svc.get_ai_interactions(student.id, course.id)] == [first.id, third.id]
    assert svc.get_ai_interactions(student.id, 999) == []
