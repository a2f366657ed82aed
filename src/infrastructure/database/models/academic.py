# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Academic records models.

Tables:
- terms: academic periods, at most one active
- teachers, students: rosters
- courses, course_prerequisites: catalog and direct prerequisite edges
- enrollments: student x course x term with lifecycle status
- evaluation_types, grades: weighted grading configuration and values
- attendance_records: one row per student, course, date and class type
- schedule_slots: weekly class meetings
- notifications: in-app notifications written by event handlers
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.infrastructure.database.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.utils.datetime import utc_now


class Term(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Academic term, e.g. 2025-I."""

    __tablename__ = "terms"
    __table_args__ = (
        UniqueConstraint("year", "half", name="uq_terms_year_half"),
        CheckConstraint("start_date < end_date", name="ck_terms_date_range"),
    )

    name: Mapped[str] = mapped_column(String(50), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    half: Mapped[str] = mapped_column(String(5), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class Teacher(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Teacher roster entry."""

    __tablename__ = "teachers"

    user_id: Mapped[str | None] = mapped_column(Uuid(as_uuid=False), nullable=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    profession: Mapped[str | None] = mapped_column(String(150), nullable=True)

    courses: Mapped[list["Course"]] = relationship("Course", back_populates="teacher")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Student(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Student roster entry with standing maintained by grading."""

    __tablename__ = "students"

    user_id: Mapped[str | None] = mapped_column(Uuid(as_uuid=False), nullable=True)
    code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    current_cycle: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    accumulated_credits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cumulative_gpa: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0")
    )
    term_gpa: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0"))

    enrollments: Mapped[list["Enrollment"]] = relationship("Enrollment", back_populates="student")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class CoursePrerequisite(Base):
    """Direct prerequisite edge: course requires prerequisite."""

    __tablename__ = "course_prerequisites"
    __table_args__ = (
        CheckConstraint("course_id <> prerequisite_id", name="ck_course_prerequisites_no_self"),
    )

    course_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True
    )
    prerequisite_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True
    )


class Course(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Catalog course."""

    __tablename__ = "courses"
    __table_args__ = (
        CheckConstraint("credits > 0", name="ck_courses_credits_positive"),
        CheckConstraint("capacity IS NULL OR capacity > 0", name="ck_courses_capacity_positive"),
    )

    code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    credits: Mapped[int] = mapped_column(Integer, nullable=False)
    weekly_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cycle: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    teacher_id: Mapped[str | None] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("teachers.id", ondelete="SET NULL"), nullable=True
    )
    capacity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    min_approved_credits: Mapped[int | None] = mapped_column(Integer, nullable=True)

    teacher: Mapped["Teacher | None"] = relationship("Teacher", back_populates="courses")
    prerequisites: Mapped[list["Course"]] = relationship(
        "Course",
        secondary="course_prerequisites",
        primaryjoin="Course.id == CoursePrerequisite.course_id",
        secondaryjoin="Course.id == CoursePrerequisite.prerequisite_id",
        viewonly=True,
    )
    evaluation_types: Mapped[list["EvaluationType"]] = relationship(
        "EvaluationType", back_populates="course", order_by="EvaluationType.display_order"
    )
    schedule_slots: Mapped[list["ScheduleSlot"]] = relationship(
        "ScheduleSlot", back_populates="course"
    )


class Enrollment(Base, UUIDPrimaryKeyMixin):
    """Student enrolled in a course for a term."""

    __tablename__ = "enrollments"
    __table_args__ = (
        UniqueConstraint("student_id", "course_id", "term_id", name="uq_enrollments_student_course_term"),
        CheckConstraint(
            "status IN ('enrolled', 'withdrawn', 'approved', 'failed')",
            name="ck_enrollments_status",
        ),
    )

    student_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True
    )
    course_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    term_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("terms.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="enrolled")
    enrolled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    withdrawn_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    final_average: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    is_authorized: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    student: Mapped["Student"] = relationship("Student", back_populates="enrollments")
    course: Mapped["Course"] = relationship("Course")
    term: Mapped["Term"] = relationship("Term")
    grades: Mapped[list["Grade"]] = relationship(
        "Grade", back_populates="enrollment", cascade="all, delete-orphan"
    )


class EvaluationType(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Weighted evaluation component of a course (e.g. midterm 30%)."""

    __tablename__ = "evaluation_types"
    __table_args__ = (
        UniqueConstraint("course_id", "name", name="uq_evaluation_types_course_name"),
        CheckConstraint("weight >= 0 AND weight <= 100", name="ck_evaluation_types_weight"),
    )

    course_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    weight: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    requires_min_attendance: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    course: Mapped["Course"] = relationship("Course", back_populates="evaluation_types")


class Grade(Base, UUIDPrimaryKeyMixin):
    """Grade value for one evaluation type of one enrollment."""

    __tablename__ = "grades"
    __table_args__ = (
        UniqueConstraint("enrollment_id", "evaluation_type_id", name="uq_grades_enrollment_type"),
        CheckConstraint("value >= 0 AND value <= 20", name="ck_grades_value_range"),
    )

    enrollment_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("enrollments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    evaluation_type_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("evaluation_types.id", ondelete="CASCADE"), nullable=False
    )
    value: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    # Weight of the evaluation type when the grade was last written
    weight: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    graded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    observations: Mapped[str | None] = mapped_column(Text, nullable=True)

    enrollment: Mapped["Enrollment"] = relationship("Enrollment", back_populates="grades")
    evaluation_type: Mapped["EvaluationType"] = relationship("EvaluationType")


class AttendanceRecord(Base, UUIDPrimaryKeyMixin):
    """Attendance of one student at one class session."""

    __tablename__ = "attendance_records"
    __table_args__ = (
        UniqueConstraint(
            "student_id", "course_id", "session_date", "class_type",
            name="uq_attendance_student_course_date_type",
        ),
    )

    student_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True
    )
    course_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    session_date: Mapped[date] = mapped_column(Date, nullable=False)
    class_type: Mapped[str] = mapped_column(String(20), nullable=False, default="theory")
    is_present: Mapped[bool] = mapped_column(Boolean, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )


class ScheduleSlot(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Weekly meeting of a course."""

    __tablename__ = "schedule_slots"
    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 1 AND 7", name="ck_schedule_slots_day"),
        CheckConstraint("start_time < end_time", name="ck_schedule_slots_time_range"),
    )

    course_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    room: Mapped[str | None] = mapped_column(String(50), nullable=True)
    class_type: Mapped[str] = mapped_column(String(20), nullable=False, default="theory")

    course: Mapped["Course"] = relationship("Course", back_populates="schedule_slots")


class Notification(Base, UUIDPrimaryKeyMixin):
    """In-app notification for a user."""

    __tablename__ = "notifications"

    user_id: Mapped[str] = mapped_column(Uuid(as_uuid=False), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    action: Mapped[str] = mapped_column(String(30), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    extra_data: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, nullable=False, default=dict)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
