import pytest

from lms import models, services
from lms.errors import NotFoundError, ValidationError


def _payload(**overrides):
    data = {'email': 'jane@test.com', 'password': 'secret-pass', 'first_name': 'Jane',
            'last_name': 'Doe', 'role': 'student'}
    data.update(overrides)
    return data


def test_create_user_hashes_password(session):
    svc = services.UserService(session)
    user = svc.create_user(_payload())
    assert user.id is not None
    assert user.password_hash != 'secret-pass'
    assert svc.verify_password(user, 'secret-pass')
    assert not svc.verify_password(user, 'wrong-pass')


def test_create_user_rejects_duplicate_email_and_bad_input(session):
    svc = services.UserService(session)
    svc.create_user(_payload())
    with pytest.raises(ValidationError):
        svc.create_user(_payload(first_name='Other'))
    with pytest.raises(ValidationError):
        svc.create_user(_payload(email='not-an-email'))
    with pytest.raises(ValidationError):
        svc.create_user(_payload(email='short@test.com', password='short'))
    with pytest.raises(ValidationError):
        svc.create_user(_payload(email='role@test.com', role='janitor'))


def test_update_user_changes_only_given_fields(session, student):
    svc = services.UserService(session)
    updated = svc.update_user({'id': student.id, 'first_name': 'Renamed'})
    assert updated.first_name == 'Renamed'
    assert updated.last_name == 'Student'
    assert updated.email == 'student@test.com'


def test_update_user_role_and_listing(session, teacher, student):
    svc = services.UserService(session)
    svc.update_user_role(student.id, models.UserRole.ADMINISTRATOR)
    assert svc.get_user(student.id).role == models.UserRole.ADMINISTRATOR
    teachers = svc.list_users(models.UserRole.TEACHER)
    assert [u.id for u in teachers] == [teacher.id]
    assert len(svc.list_users()) == 2


def test_missing_user_raises_not_found(session):
    svc = services.UserService(session)
    with pytest.raises(NotFoundError):
        svc.get_user(42)
    with pytest.raises(NotFoundError):
        svc.update_user_role(42, 'teacher')


def test_update_user_rejects_null_required_fields(session, student):
    svc = services.UserService(session)
    for field in ('email', 'first_name', 'last_name', 'role'):
        with pytest.raises(ValidationError):
            svc.update_user({'id': student.id, field: None})
    unchanged = svc.get_user(student.id)
    assert unchanged.role == models.UserRole.STUDENT
    assert unchanged.email == 'student@test.com'
