from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from lms import services
from lms.errors import NotFoundError, ValidationError
from lms.schemas import CreateAssignmentIn, UpdateAssignmentIn, validate_input


@pytest.fixture()
def assignment(session, lesson):
    return services.AssignmentService(session).create_assignment({
        'lesson_id': lesson.id, 'title': 'Essay', 'description': 'Write one',
        'due_date': datetime(2030, 1, 1, 12, 0), 'max_points': 50,
    })


def test_create_and_update_assignment(session, lesson, assignment):
    svc = services.AssignmentService(session)
    assert [a.id for a in svc.list_assignments(lesson.id)] == [assignment.id]
    updated = svc.update_assignment({'id': assignment.id, 'max_points': 60})
    assert updated.max_points == 60
    assert updated.title == 'Essay'
    with pytest.raises(NotFoundError):
        svc.create_assignment({'lesson_id': 999, 'title': 'X', 'max_points': 1})
    with pytest.raises(ValidationError):
        svc.create_assignment({'lesson_id': lesson.id, 'title': 'X', 'max_points': 0})


def test_submit_assignment_once_per_student(session, assignment, student, teacher):
    svc = services.AssignmentService(session)
    sub = svc.submit_assignment({'assignment_id': assignment.id, 'student_id': student.id, 'content': 'v1'})
    assert sub.score is None
    assert sub.graded_at is None
    with pytest.raises(ValidationError):
        svc.submit_assignment({'assignment_id': assignment.id, 'student_id': student.id, 'content': 'v2'})
    with pytest.raises(NotFoundError):
        svc.submit_assignment({'assignment_id': assignment.id, 'student_id': teacher.id, 'content': 'v1'})
    with pytest.raises(ValidationError):
        svc.submit_assignment({'assignment_id': assignment.id, 'student_id': student.id})
    assert [s.id for s in svc.list_submissions(assignment.id)] == [sub.id]
    assert [s.id for s in svc.list_submissions_by_student(student.id)] == [sub.id]


def test_grade_assignment(session, assignment, student):
    svc = services.AssignmentService(session)
    sub = svc.submit_assignment({'assignment_id': assignment.id, 'student_id': student.id, 'file_path': 'essay.pdf'})
    graded = svc.grade_assignment({'submission_id': sub.id, 'score': 42, 'feedback': 'Good'})
    assert graded.score == 42
    assert graded.feedback == 'Good'
    assert graded.graded_at is not None
    with pytest.raises(ValidationError):
        svc.grade_assignment({'submission_id': sub.id, 'score': 51})
    with pytest.raises(ValidationError):
        svc.grade_assignment({'submission_id': sub.id, 'score': -1})
    with pytest.raises(NotFoundError):
        svc.grade_assignment({'submission_id': 999, 'score': 1})


def test_delete_assignment_removes_submissions(session, assignment, student):
    svc = services.AssignmentService(session)
    svc.submit_assignment({'assignment_id': assignment.id, 'student_id': student.id, 'content': 'v1'})
    assignment_id = assignment.id
    svc.delete_assignment(assignment_id)
    assert svc.list_submissions(assignment_id) == []
    with pytest.raises(NotFoundError):
        svc.get_assignment(assignment_id)


def test_naive_due_date_is_stored_as_utc(session, assignment):
    stored = services.AssignmentService(session).get_assignment(assignment.id)
    assert stored.due_date.replace(tzinfo=None) == datetime(2030, 1, 1, 12, 0)

    data = validate_input(CreateAssignmentIn, {
        'lesson_id': 1, 'title': 'T', 'max_points': 5, 'due_date': datetime(2030, 1, 1, 12, 0),
    })
    assert data.due_date.tzinfo is timezone.utc
    shifted = validate_input(UpdateAssignmentIn, {
        'id': 1, 'due_date': datetime(2030, 1, 1, 14, 0, tzinfo=timezone(timedelta(hours=2))),
    })
    assert shifted.due_date == datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)


def test_update_assignment_with_aware_due_date(session, assignment):
    svc = services.AssignmentService(session)
    updated = svc.update_assignment({'id': assignment.id, 'due_date': datetime(2031, 6, 1, tzinfo=timezone.utc)})
    assert updated.due_date.replace(tzinfo=None) == datetime(2031, 6, 1)


def test_update_assignment_rejects_null_required_fields(session, assignment):
    svc = services.AssignmentService(session)
    for field in ('title', 'max_points'):
        with pytest.raises(ValidationError):
            svc.update_assignment({'id': assignment.id, field: None})
    cleared = svc.update_assignment({'id': assignment.id, 'description': None, 'due_date': None})
    assert cleared.description is None
    assert cleared.due_date is None
    assert cleared.title == 'Essay'


def test_fractional_grade_is_exact(session, assignment, student):
    svc = services.AssignmentService(session)
    sub = svc.submit_assignment({'assignment_id': assignment.id, 'student_id': student.id, 'content': 'v1'})
    graded = svc.grade_assignment({'submission_id': sub.id, 'score': '49.95'})
    assert graded.score == Decimal('49.95')
