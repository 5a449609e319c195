"""Attendance report for one group: a student x schedule grid with totals."""

import csv
import logging
from dataclasses import dataclass, field
from typing import IO, Iterable, List, Optional

from .api.models import AttendanceStatus, ClassSchedule, Student
from .const import NOT_MARKED

_LOGGER = logging.getLogger(__name__)

NO_DATA = "No data"
NO_MARKS = "No marks"


@dataclass
class ReportRow:
	"""One student's line in the report."""
	student_name: str
	index_number: str
	statuses: List[str] = field(default_factory=list)

	def _count(self, *labels: str) -> int:
		return sum(1 for status in self.statuses if status in labels)

	@property
	def positive_count(self) -> int:
		return self._count(AttendanceStatus.PRESENT.display_name, AttendanceStatus.LATE.display_name)

	@property
	def marked_count(self) -> int:
		return self._count(*(s.display_name for s in AttendanceStatus))

	@property
	def attendance_percentage(self) -> float:
		"""Present and late over marked sessions, 0.0 when nothing is marked."""
		if not self.marked_count:
			return 0.0
		return self.positive_count / self.marked_count * 100

	@property
	def statistics(self) -> str:
		if not self.statuses:
			return NO_DATA
		if not self.marked_count:
			return NO_MARKS
		return f"{self.attendance_percentage:.1f}% ({self.positive_count}/{self.marked_count})"


@dataclass
class AttendanceReport:
	"""Rows in student order; columns follow the schedule order."""
	schedules: List[ClassSchedule]
	rows: List[ReportRow]

	@property
	def average_percentage(self) -> float:
		if not self.rows:
			return 0.0
		return sum(row.attendance_percentage for row in self.rows) / len(self.rows)

	@property
	def best_row(self) -> Optional[ReportRow]:
		return max(self.rows, key=lambda row: row.attendance_percentage, default=None)

	@property
	def worst_row(self) -> Optional[ReportRow]:
		return min(self.rows, key=lambda row: row.attendance_percentage, default=None)

	@property
	def summary(self) -> str:
		if not self.rows:
			return f"Average attendance: 0%, best: {NO_DATA}, worst: {NO_DATA}"
		best, worst = self.best_row, self.worst_row
		return (
			f"Average attendance: {self.average_percentage:.1f}%, "
			f"best: {best.student_name} ({best.attendance_percentage:.1f}%), "
			f"worst: {worst.student_name} ({worst.attendance_percentage:.1f}%)"
		)


def build_report(students: Iterable[Student], schedules: Iterable[ClassSchedule]) -> AttendanceReport:
	"""Build the grid from local state; unmarked cells read "Not marked"."""
	schedules = list(schedules)
	rows = []
	for student in students:
		row = ReportRow(student.full_name, student.index_number)
		for schedule in schedules:
			attendance = schedule.get_attendance_for_student(student)
			row.statuses.append(attendance.status.display_name if attendance else NOT_MARKED)
		rows.append(row)
	_LOGGER.debug(f"Built attendance report: {len(rows)} students x {len(schedules)} schedules")
	return AttendanceReport(schedules, rows)


def write_csv(report: AttendanceReport, fileobj: IO[str]) -> None:
	"""Write the report as CSV; open the file with newline=""."""
	writer = csv.writer(fileobj)
	writer.writerow(
		["Student", "Index number"]
		+ [f"{s.subject} ({s.formatted_start_time})" for s in report.schedules]
		+ ["Statistics"]
	)
	for row in report.rows:
		writer.writerow([row.student_name, row.index_number] + row.statuses + [row.statistics])


def default_csv_filename(group_name: str) -> str:
	return f"attendance_{group_name}.csv"
