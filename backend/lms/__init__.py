"""Learning-management backend.

Courses, lessons, quizzes graded by exact answer matching, assignments,
enrollments with lesson progress, file attachments and a course assistant
log. Callers drive it through the classes in `lms.services`, passing a
SQLModel session from `lms.database`.
"""
