"""Data models for classroll entities."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from ..const import DISPLAY_DATETIME_FORMAT, DISPLAY_TIME_FORMAT


class AttendanceStatus(Enum):
	"""Attendance status with its display label and colour."""

	PRESENT = ("Present", "#38A169")
	LATE = ("Late", "#F56500")
	ABSENT = ("Absent", "#E53E3E")

	def __init__(self, display_name: str, color: str) -> None:
		self.display_name = display_name
		self.color = color

	@classmethod
	def from_wire(cls, value: Optional[str]) -> "AttendanceStatus":
		"""Map a wire value to a status; unknown values count as absent."""
		try:
			return cls[str(value).upper()]
		except KeyError:
			return cls.ABSENT


@dataclass
class Group:
	"""A named cohort of students."""
	name: str
	specialization: str
	created_at: datetime = field(default_factory=datetime.now)
	id: Optional[int] = None

	@property
	def formatted_date(self) -> str:
		return self.created_at.strftime(DISPLAY_DATETIME_FORMAT)

	def __str__(self) -> str:
		return f"{self.name} ({self.specialization})"


@dataclass
class Student:
	"""A student identified by a 6-digit index number."""
	first_name: str
	last_name: str
	index_number: str
	group_name: Optional[str] = None
	added_at: datetime = field(default_factory=datetime.now)
	id: Optional[int] = None

	@property
	def full_name(self) -> str:
		return f"{self.first_name} {self.last_name}"

	@property
	def has_group(self) -> bool:
		return bool(self.group_name and self.group_name.strip())

	@property
	def formatted_date(self) -> str:
		return self.added_at.strftime(DISPLAY_DATETIME_FORMAT)

	def __str__(self) -> str:
		return f"{self.full_name} ({self.index_number}) - {self.group_name}"


@dataclass(eq=False)
class ClassSchedule:
	"""A scheduled class session owning its attendance entries.

	A schedule without an id exists only locally; once the server has
	assigned one it is considered confirmed. Equality is identity.
	"""
	subject: str
	classroom: str
	start_time: datetime
	end_time: datetime
	instructor: str
	notes: str
	group_name: Optional[str]
	id: Optional[int] = None
	created_at: datetime = field(default_factory=datetime.now)
	attendances: List["Attendance"] = field(default_factory=list, repr=False)

	@property
	def is_from_server(self) -> bool:
		return self.id is not None

	def add_attendance(self, attendance: "Attendance") -> None:
		"""Add an entry, replacing any existing one for the same student."""
		self.remove_attendance(attendance.student)
		attendance.schedule = self
		self.attendances.append(attendance)

	def remove_attendance(self, student: "Student") -> bool:
		before = len(self.attendances)
		self.attendances[:] = [
			a for a in self.attendances if a.student.index_number != student.index_number
		]
		return len(self.attendances) != before

	def get_attendance_for_student(self, student: "Student") -> Optional["Attendance"]:
		for attendance in self.attendances:
			if attendance.student.index_number == student.index_number:
				return attendance
		return None

	def has_attendance_for_student(self, student: "Student") -> bool:
		return self.get_attendance_for_student(student) is not None

	def clear_attendances(self) -> None:
		self.attendances.clear()

	def _count(self, status: AttendanceStatus) -> int:
		return sum(1 for a in self.attendances if a.status is status)

	@property
	def present_count(self) -> int:
		return self._count(AttendanceStatus.PRESENT)

	@property
	def late_count(self) -> int:
		return self._count(AttendanceStatus.LATE)

	@property
	def absent_count(self) -> int:
		return self._count(AttendanceStatus.ABSENT)

	@property
	def total_attendance_count(self) -> int:
		return len(self.attendances)

	@property
	def attendance_summary(self) -> str:
		if not self.attendances:
			return "No attendance entries"
		return (
			f"Present: {self.present_count}, Late: {self.late_count}, "
			f"Absent: {self.absent_count} (Total: {self.total_attendance_count})"
		)

	@property
	def formatted_start_time(self) -> str:
		return self.start_time.strftime(DISPLAY_DATETIME_FORMAT)

	@property
	def formatted_end_time(self) -> str:
		return self.end_time.strftime(DISPLAY_TIME_FORMAT)

	@property
	def formatted_time_range(self) -> str:
		return f"{self.formatted_start_time} - {self.formatted_end_time}"

	@property
	def formatted_created_date(self) -> str:
		return self.created_at.strftime(DISPLAY_DATETIME_FORMAT)

	def __str__(self) -> str:
		return f"{self.subject} - {self.formatted_time_range}"


class Attendance:
	"""Attendance of one student at one class session.

	Two entries are equal when they refer to the same student index number
	and the same schedule object; status, notes and timestamps are ignored.
	"""

	def __init__(
		self,
		student: Student,
		schedule: ClassSchedule,
		status: AttendanceStatus,
		notes: str = "",
		marked_at: Optional[datetime] = None,
		id: Optional[int] = None,
	) -> None:
		self.student = student
		self.schedule = schedule
		self._status = status
		self.notes = notes or ""
		self.marked_at = marked_at or datetime.now()
		self.id = id

	@property
	def status(self) -> AttendanceStatus:
		return self._status

	@status.setter
	def status(self, value: AttendanceStatus) -> None:
		self._status = value
		# marked_at never moves backwards, even across clock adjustments
		self.marked_at = max(datetime.now(), self.marked_at)

	@property
	def formatted_marked_time(self) -> str:
		return self.marked_at.strftime(DISPLAY_DATETIME_FORMAT)

	def __eq__(self, other: object) -> bool:
		if self is other:
			return True
		if not isinstance(other, Attendance):
			return NotImplemented
		return (
			self.student.index_number == other.student.index_number
			and self.schedule is other.schedule
		)

	def __hash__(self) -> int:
		return hash((self.student.index_number, id(self.schedule)))

	def __repr__(self) -> str:
		return (
			f"Attendance(student={self.student.index_number!r}, "
			f"schedule={self.schedule.subject!r}, status={self._status.name})"
		)

	def __str__(self) -> str:
		return f"{self.student.full_name} - {self._status.display_name}"
