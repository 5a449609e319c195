"""Sync coordinator: owns the local collections and mirrors changes to the server.

The local collections are the source of truth. Adds go to the server first
and fall back to local-only acceptance when the server cannot be reached;
deletes and attendance changes apply locally first and reach the server on a
best-effort basis. Only a refresh lets the server overwrite local state.
"""

import asyncio
import inspect
import logging
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from typing import (
	Any, Awaitable, Callable, Dict, Hashable, Iterator, List, Optional, Set, Tuple, Union,
)

from .api.client import ClassrollClient
from .api.exceptions import (
	ClassrollConflictError,
	ClassrollError,
	ClassrollValidationError,
)
from .api.models import Attendance, AttendanceStatus, ClassSchedule, Group, Student
from .const import (
	ACTION_ADD_GROUP,
	ACTION_ADD_SCHEDULE,
	ACTION_ADD_STUDENT,
	ACTION_ASSIGN_STUDENT,
	ACTION_CHECK_CONNECTION,
	ACTION_CLEAR_ATTENDANCE,
	ACTION_DELETE_GROUP,
	ACTION_DELETE_SCHEDULE,
	ACTION_DELETE_STUDENT,
	ACTION_LOAD_ATTENDANCE,
	ACTION_REFRESH_GROUPS,
	ACTION_REFRESH_SCHEDULES,
	ACTION_REFRESH_STUDENTS,
	ACTION_UNASSIGN_STUDENT,
	NOTICE_ERROR,
	NOTICE_INFO,
	NOTICE_WARNING,
	UNKNOWN_GROUP,
)
from .dispatch import KeyedSerializer, UiDispatcher
from .validation import validate_group_form, validate_schedule_form, validate_student_form

_LOGGER = logging.getLogger(__name__)

ConfirmCallback = Callable[[str, str], Union[bool, Awaitable[bool]]]
Listener = Callable[[], None]
NoticeListener = Callable[["Notice"], None]

REFRESH_HINT = "The server may still hold the record; refresh to verify."


class SyncOutcome(Enum):
	"""How a sync operation ended."""
	SUCCESS = "success"
	LOCAL_ONLY = "local_only"
	CONFLICT = "conflict"
	INVALID = "invalid"
	CANCELLED = "cancelled"
	ERROR = "error"


@dataclass
class SyncResult:
	"""Outcome of a coordinator operation."""
	outcome: SyncOutcome
	message: str = ""
	entity: Any = None
	field: Optional[str] = None

	@property
	def ok(self) -> bool:
		return self.outcome in (SyncOutcome.SUCCESS, SyncOutcome.LOCAL_ONLY)


@dataclass(frozen=True)
class Notice:
	"""A message for the operator."""
	level: str
	title: str
	message: str


class ClassrollCoordinator:
	"""Application-state store plus the local-first sync protocol.

	All methods must run on the dispatcher's loop. Presentation code reads
	the tuple views and subscribes with async_add_listener().
	"""

	def __init__(
		self,
		client: ClassrollClient,
		confirm: Optional[ConfirmCallback] = None,
		dispatcher: Optional[UiDispatcher] = None,
	) -> None:
		"""Initialise coordinator.

		Args:
			client: Entered ClassrollClient.
			confirm: Called with (title, message) before destructive operations;
				may return a bool or an awaitable bool. Without it the caller is
				assumed to have confirmed already.
			dispatcher: UI-thread dispatcher; one bound to the running loop is
				created when omitted.
		"""
		self.client = client
		self._confirm = confirm
		self._dispatcher = dispatcher or UiDispatcher()
		self._groups: List[Group] = []
		self._students: List[Student] = []
		self._schedules: List[ClassSchedule] = []
		self._busy: Set[str] = set()
		self._listeners: List[Listener] = []
		self._notice_listeners: List[NoticeListener] = []
		self._background: Set[asyncio.Task] = set()
		self._serializer = KeyedSerializer()
		self.notices: List[Notice] = []
		self.connected: Optional[bool] = None

	# Read-only views

	@property
	def groups(self) -> Tuple[Group, ...]:
		return tuple(self._groups)

	@property
	def students(self) -> Tuple[Student, ...]:
		return tuple(self._students)

	@property
	def schedules(self) -> Tuple[ClassSchedule, ...]:
		return tuple(self._schedules)

	@property
	def last_notice(self) -> Optional[Notice]:
		return self.notices[-1] if self.notices else None

	def busy(self, action: str) -> bool:
		"""Whether the trigger for an action is currently in progress."""
		return action in self._busy

	def find_group(self, name: str) -> Optional[Group]:
		wanted = (name or "").strip().lower()
		return next((g for g in self._groups if g.name.lower() == wanted), None)

	def find_student(self, index_number: str) -> Optional[Student]:
		return next((s for s in self._students if s.index_number == index_number), None)

	def students_in_group(self, group_name: str) -> List[Student]:
		return [s for s in self._students if s.group_name == group_name]

	def unassigned_students(self) -> List[Student]:
		return [s for s in self._students if not s.has_group]

	def schedules_for_group(self, group_name: str) -> List[ClassSchedule]:
		return [s for s in self._schedules if s.group_name == group_name]

	# Subscriptions

	def async_add_listener(self, callback: Listener) -> Callable[[], None]:
		"""Register a state-change listener; returns a function that removes it."""
		self._listeners.append(callback)

		def remove() -> None:
			if callback in self._listeners:
				self._listeners.remove(callback)
		return remove

	def async_add_notice_listener(self, callback: NoticeListener) -> Callable[[], None]:
		self._notice_listeners.append(callback)

		def remove() -> None:
			if callback in self._notice_listeners:
				self._notice_listeners.remove(callback)
		return remove

	def async_update_listeners(self) -> None:
		for listener in list(self._listeners):
			listener()

	def _notify(self, level: str, title: str, message: str) -> Notice:
		notice = Notice(level, title, message)
		log = {NOTICE_INFO: _LOGGER.info, NOTICE_WARNING: _LOGGER.warning}.get(level, _LOGGER.error)
		log(f"{title}: {message}")
		self.notices.append(notice)
		for listener in list(self._notice_listeners):
			listener(notice)
		return notice

	@contextmanager
	def _in_progress(self, action: str) -> Iterator[None]:
		self._dispatcher.assert_owner()
		self._busy.add(action)
		self.async_update_listeners()
		try:
			yield
		finally:
			self._busy.discard(action)
			self.async_update_listeners()

	def _rejected_busy(self, action: str) -> SyncResult:
		_LOGGER.debug(f"Ignoring {action}: already in progress")
		return SyncResult(SyncOutcome.ERROR, f"{action} is already in progress")

	def _invalid(self, err: ClassrollValidationError) -> SyncResult:
		self._notify(NOTICE_WARNING, "Invalid input", err.message)
		return SyncResult(SyncOutcome.INVALID, err.message, field=err.field)

	async def _ask(self, title: str, message: str) -> bool:
		if self._confirm is None:
			return True
		answer = self._confirm(title, message)
		if inspect.isawaitable(answer):
			answer = await answer
		return bool(answer)

	# Background pushes

	def _spawn(self, key: Hashable, factory: Callable[[], Awaitable[Any]]) -> asyncio.Task:
		task = asyncio.get_running_loop().create_task(self._serializer.run(key, factory))
		self._background.add(task)
		task.add_done_callback(self._background.discard)
		task.add_done_callback(self._log_push_failure)
		return task

	@staticmethod
	def _log_push_failure(task: asyncio.Task) -> None:
		if not task.cancelled() and task.exception() is not None:
			_LOGGER.error(f"Background push failed: {task.exception()!r}")

	async def async_wait_idle(self) -> None:
		"""Wait until every background push has settled."""
		while self._background:
			await asyncio.gather(*list(self._background), return_exceptions=True)

	# Groups

	async def async_add_group(self, name: Any, specialization: Any) -> SyncResult:
		"""Create a group on the server, keeping it locally if the server is unreachable."""
		if self.busy(ACTION_ADD_GROUP):
			return self._rejected_busy(ACTION_ADD_GROUP)
		try:
			form = validate_group_form(name, specialization)
		except ClassrollValidationError as err:
			return self._invalid(err)
		if self.find_group(form["name"]):
			return self._invalid(ClassrollValidationError("name", "A group with this name already exists"))

		group = Group(form["name"], form["specialization"])
		with self._in_progress(ACTION_ADD_GROUP):
			try:
				confirmed = await self.client.groups.async_create(group)
			except ClassrollConflictError as err:
				self._notify(NOTICE_WARNING, "Group exists", str(err))
				return SyncResult(SyncOutcome.CONFLICT, str(err))
			except ClassrollError as err:
				self._groups.append(group)
				self._notify(
					NOTICE_WARNING,
					"Saved locally",
					f"Group '{group.name}' was added locally only; the server could not be reached: {err}",
				)
				return SyncResult(SyncOutcome.LOCAL_ONLY, str(err), group)

			self._groups.append(confirmed)
			self._notify(NOTICE_INFO, "Group added", f"Group '{confirmed.name}' was added")
			return SyncResult(SyncOutcome.SUCCESS, entity=confirmed)

	async def async_delete_group(self, name: str) -> SyncResult:
		"""Remove a group locally at once, then from the server on a best-effort basis."""
		if self.busy(ACTION_DELETE_GROUP):
			return self._rejected_busy(ACTION_DELETE_GROUP)
		group = self.find_group(name)
		if group is None:
			return SyncResult(SyncOutcome.ERROR, f"Group '{name}' not found")
		if not await self._ask(
			"Delete group",
			f"Group: {group.name}\nSpecialization: {group.specialization}\n\n"
			"This operation cannot be undone!",
		):
			return SyncResult(SyncOutcome.CANCELLED)

		with self._in_progress(ACTION_DELETE_GROUP):
			self._groups.remove(group)
			self.async_update_listeners()
			return await self._remote_delete(
				self.client.groups.async_delete(group.name),
				group,
				f"Group '{group.name}'",
			)

	async def async_refresh_groups(self) -> SyncResult:
		"""Replace the local groups with the server's list."""
		if self.busy(ACTION_REFRESH_GROUPS):
			return self._rejected_busy(ACTION_REFRESH_GROUPS)
		with self._in_progress(ACTION_REFRESH_GROUPS):
			try:
				groups = await self.client.groups.async_list()
			except ClassrollError as err:
				self._notify(NOTICE_ERROR, "Refresh failed", f"Could not load groups: {err}")
				return SyncResult(SyncOutcome.ERROR, str(err))
			self._groups[:] = groups
			_LOGGER.info(f"Loaded {len(groups)} groups from server")
			return SyncResult(SyncOutcome.SUCCESS, entity=list(groups))

	async def _remote_delete(self, call: Awaitable[bool], entity: Any, label: str) -> SyncResult:
		try:
			deleted = await call
			reason = "the server refused the request"
		except ClassrollError as err:
			deleted = False
			reason = str(err)

		if deleted:
			self._notify(NOTICE_INFO, "Deleted", f"{label} was deleted")
			return SyncResult(SyncOutcome.SUCCESS, entity=entity)

		self._notify(
			NOTICE_WARNING,
			"Deleted locally",
			f"{label} was deleted locally only ({reason}). {REFRESH_HINT}",
		)
		return SyncResult(SyncOutcome.LOCAL_ONLY, reason, entity)

	# Students

	async def async_add_student(
		self, first_name: Any, last_name: Any, index_number: Any, group_name: Optional[str] = None
	) -> SyncResult:
		"""Create a student (optionally without a group) server-first."""
		if self.busy(ACTION_ADD_STUDENT):
			return self._rejected_busy(ACTION_ADD_STUDENT)
		try:
			form = validate_student_form(first_name, last_name, index_number, group_name)
		except ClassrollValidationError as err:
			return self._invalid(err)
		if self.find_student(form["index_number"]):
			return self._invalid(ClassrollValidationError(
				"index_number", f"A student with index number {form['index_number']} already exists"
			))

		student = Student(form["first_name"], form["last_name"], form["index_number"], form["group_name"])
		with self._in_progress(ACTION_ADD_STUDENT):
			try:
				confirmed = await self.client.students.async_create(student)
			except ClassrollConflictError as err:
				self._notify(NOTICE_WARNING, "Student exists", str(err))
				return SyncResult(SyncOutcome.CONFLICT, str(err))
			except ClassrollError as err:
				self._students.append(student)
				self._notify(
					NOTICE_WARNING,
					"Saved locally",
					f"Student {student.full_name} was added locally only; the server could not be reached: {err}",
				)
				return SyncResult(SyncOutcome.LOCAL_ONLY, str(err), student)

			self._students.append(confirmed)
			self._notify(NOTICE_INFO, "Student added", f"Student {confirmed.full_name} was added")
			return SyncResult(SyncOutcome.SUCCESS, entity=confirmed)

	async def async_delete_student(self, index_number: str) -> SyncResult:
		"""Remove a student and all of their attendance, locally first."""
		if self.busy(ACTION_DELETE_STUDENT):
			return self._rejected_busy(ACTION_DELETE_STUDENT)
		student = self.find_student(index_number)
		if student is None:
			return SyncResult(SyncOutcome.ERROR, f"Student {index_number} not found")
		if not await self._ask(
			"Delete student",
			f"Student: {student.full_name} ({student.index_number})\n"
			"All attendance entries of this student will be removed.\n\n"
			"This operation cannot be undone!",
		):
			return SyncResult(SyncOutcome.CANCELLED)

		with self._in_progress(ACTION_DELETE_STUDENT):
			self._students.remove(student)
			self._drop_attendance(student, self._schedules)
			self.async_update_listeners()
			return await self._remote_delete(
				self.client.students.async_delete(student.index_number),
				student,
				f"Student {student.full_name}",
			)

	async def async_assign_student_to_group(self, index_number: str, group_name: str) -> SyncResult:
		"""Move a student into a group; kept locally if the server update fails."""
		if self.busy(ACTION_ASSIGN_STUDENT):
			return self._rejected_busy(ACTION_ASSIGN_STUDENT)
		student = self.find_student(index_number)
		if student is None:
			self._notify(NOTICE_WARNING, "Student not found", f"No student with index number {index_number}")
			return SyncResult(SyncOutcome.ERROR, f"Student {index_number} not found")
		if student.group_name == group_name:
			self._notify(NOTICE_INFO, "Already in group", f"{student.full_name} is already in {group_name}")
			return SyncResult(SyncOutcome.SUCCESS, entity=student)
		if student.has_group and not await self._ask(
			"Move student",
			f"{student.full_name} ({student.index_number}) is assigned to {student.group_name}.\n\n"
			f"Move the student to {group_name}?",
		):
			return SyncResult(SyncOutcome.CANCELLED)

		updated = replace(student, group_name=group_name)
		with self._in_progress(ACTION_ASSIGN_STUDENT):
			try:
				confirmed = await self.client.students.async_update(index_number, updated)
			except ClassrollError as err:
				student.group_name = group_name
				self._notify(
					NOTICE_WARNING,
					"Saved locally",
					f"{student.full_name} was assigned to {group_name} locally only: {err}",
				)
				return SyncResult(SyncOutcome.LOCAL_ONLY, str(err), student)

			student.group_name = confirmed.group_name or group_name
			student.id = confirmed.id if confirmed.id is not None else student.id
			self._notify(NOTICE_INFO, "Student assigned", f"{student.full_name} was assigned to {group_name}")
			return SyncResult(SyncOutcome.SUCCESS, entity=student)

	async def async_remove_student_from_group(self, index_number: str) -> SyncResult:
		"""Unassign a student; they stay in the roster without a group."""
		if self.busy(ACTION_UNASSIGN_STUDENT):
			return self._rejected_busy(ACTION_UNASSIGN_STUDENT)
		student = self.find_student(index_number)
		if student is None or not student.has_group:
			return SyncResult(SyncOutcome.ERROR, f"Student {index_number} is not assigned to a group")
		old_group = student.group_name
		if not await self._ask(
			"Remove from group",
			f"Remove {student.full_name} from {old_group}?\n"
			"Their attendance entries for this group will be removed. "
			"This operation cannot be undone!",
		):
			return SyncResult(SyncOutcome.CANCELLED)

		with self._in_progress(ACTION_UNASSIGN_STUDENT):
			student.group_name = None
			self._drop_attendance(student, self.schedules_for_group(old_group))
			self.async_update_listeners()
			try:
				await self.client.students.async_remove_from_group(index_number)
			except ClassrollError as err:
				self._notify(
					NOTICE_WARNING,
					"Removed locally",
					f"{student.full_name} was removed from {old_group} locally only ({err}). {REFRESH_HINT}",
				)
				return SyncResult(SyncOutcome.LOCAL_ONLY, str(err), student)
			self._notify(
				NOTICE_INFO, "Removed from group", f"{student.full_name} was removed from {old_group}"
			)
			return SyncResult(SyncOutcome.SUCCESS, entity=student)

	async def async_refresh_students(
		self, group_name: Optional[str] = None, without_group: bool = False
	) -> SyncResult:
		"""Replace local students with the server's list.

		When scoped to a group (or to unassigned students) only that slice of
		the local roster is replaced.
		"""
		if self.busy(ACTION_REFRESH_STUDENTS):
			return self._rejected_busy(ACTION_REFRESH_STUDENTS)
		with self._in_progress(ACTION_REFRESH_STUDENTS):
			try:
				if group_name:
					students = await self.client.students.async_list_by_group(group_name)
				elif without_group:
					students = await self.client.students.async_list_without_group()
				else:
					students = await self.client.students.async_list()
			except ClassrollError as err:
				self._notify(NOTICE_ERROR, "Refresh failed", f"Could not load students: {err}")
				return SyncResult(SyncOutcome.ERROR, str(err))

			if group_name:
				in_scope = lambda s: s.group_name == group_name  # noqa: E731
			elif without_group:
				in_scope = lambda s: not s.has_group  # noqa: E731
			else:
				in_scope = lambda s: True  # noqa: E731
			fetched = {s.index_number for s in students}
			kept = [s for s in self._students if not in_scope(s) and s.index_number not in fetched]
			self._students[:] = kept + list(students)
			_LOGGER.info(f"Loaded {len(students)} students from server")
			return SyncResult(SyncOutcome.SUCCESS, entity=list(students))

	def _drop_attendance(self, student: Student, schedules: List[ClassSchedule]) -> None:
		for schedule in schedules:
			if schedule.remove_attendance(student) and schedule.id is not None:
				self._spawn(
					(student.index_number, schedule.id),
					lambda s=student, sch=schedule: self._push_clear(s, sch),
				)

	# Schedules

	async def async_add_schedule(
		self,
		subject: Any,
		day: Optional[date],
		start_text: Any,
		end_text: Any = "",
		group_name: Optional[str] = None,
		classroom: Any = "",
		instructor: Any = "",
		notes: Any = "",
		sync: bool = True,
	) -> SyncResult:
		"""Add a class schedule.

		With sync=False the schedule is kept locally (no id) and never sent.
		Otherwise the server copy is preferred and the local one is kept if the
		server cannot be reached.
		"""
		if self.busy(ACTION_ADD_SCHEDULE):
			return self._rejected_busy(ACTION_ADD_SCHEDULE)
		try:
			form = validate_schedule_form(subject, day, start_text, end_text, classroom, instructor, notes)
		except ClassrollValidationError as err:
			return self._invalid(err)

		schedule = ClassSchedule(
			subject=form.subject,
			classroom=form.classroom,
			start_time=form.start,
			end_time=form.end,
			instructor=form.instructor,
			notes=form.notes,
			group_name=group_name,
		)
		if not sync:
			self._dispatcher.assert_owner()
			self._schedules.append(schedule)
			self.async_update_listeners()
			self._notify(NOTICE_INFO, "Schedule added", f"Schedule '{schedule.subject}' was added locally")
			return SyncResult(SyncOutcome.LOCAL_ONLY, entity=schedule)

		with self._in_progress(ACTION_ADD_SCHEDULE):
			try:
				confirmed = await self.client.schedules.async_create(schedule)
			except ClassrollError as err:
				self._schedules.append(schedule)
				self._notify(
					NOTICE_WARNING,
					"Saved locally",
					f"Schedule '{schedule.subject}' was added locally only; the server could not be reached: {err}",
				)
				return SyncResult(SyncOutcome.LOCAL_ONLY, str(err), schedule)

			if group_name:
				confirmed.group_name = group_name
			elif confirmed.group_name == UNKNOWN_GROUP:
				confirmed.group_name = None
			self._schedules.append(confirmed)
			self._notify(NOTICE_INFO, "Schedule added", f"Schedule '{confirmed.subject}' was added")
			return SyncResult(SyncOutcome.SUCCESS, entity=confirmed)

	async def async_delete_schedule(self, schedule: ClassSchedule) -> SyncResult:
		"""Remove a schedule locally; confirmed schedules are also deleted remotely."""
		if self.busy(ACTION_DELETE_SCHEDULE):
			return self._rejected_busy(ACTION_DELETE_SCHEDULE)
		if schedule not in self._schedules:
			return SyncResult(SyncOutcome.ERROR, f"Schedule '{schedule.subject}' not found")
		scope = "also on the server" if schedule.is_from_server else "local only"
		if not await self._ask(
			"Delete schedule",
			f"Schedule: {schedule.subject}\nDate: {schedule.formatted_start_time}\n"
			f"Attendance: {schedule.attendance_summary}\n\n"
			f"All attendance entries will be lost ({scope}). This operation cannot be undone!",
		):
			return SyncResult(SyncOutcome.CANCELLED)

		with self._in_progress(ACTION_DELETE_SCHEDULE):
			self._schedules.remove(schedule)
			self.async_update_listeners()
			if not schedule.is_from_server:
				self._notify(NOTICE_INFO, "Deleted", f"Local schedule '{schedule.subject}' was deleted")
				return SyncResult(SyncOutcome.SUCCESS, entity=schedule)
			return await self._remote_delete(
				self.client.schedules.async_delete(schedule),
				schedule,
				f"Schedule '{schedule.subject}'",
			)

	async def async_refresh_schedules(
		self, group_name: Optional[str] = None, with_attendance: bool = False
	) -> SyncResult:
		"""Replace local schedules (all, or one group's) with the server's list."""
		if self.busy(ACTION_REFRESH_SCHEDULES):
			return self._rejected_busy(ACTION_REFRESH_SCHEDULES)
		with self._in_progress(ACTION_REFRESH_SCHEDULES):
			try:
				if group_name:
					schedules = await self.client.schedules.async_list_by_group(group_name)
				else:
					schedules = await self.client.schedules.async_list()
			except ClassrollError as err:
				self._notify(NOTICE_ERROR, "Refresh failed", f"Could not load schedules: {err}")
				return SyncResult(SyncOutcome.ERROR, str(err))

			if group_name:
				kept = [s for s in self._schedules if s.group_name != group_name]
			else:
				kept = []
			self._schedules[:] = kept + list(schedules)
			_LOGGER.info(f"Loaded {len(schedules)} schedules from server")

		if with_attendance:
			for schedule in schedules:
				await self._fetch_attendance(schedule, silent=True)
			self.async_update_listeners()
		return SyncResult(SyncOutcome.SUCCESS, entity=list(schedules))

	# Attendance

	async def async_load_attendance(self, schedule: ClassSchedule) -> SyncResult:
		"""Replace a confirmed schedule's attendance with the server's entries."""
		if schedule.id is None:
			_LOGGER.debug(f"Schedule '{schedule.subject}' is local only; nothing to load")
			return SyncResult(SyncOutcome.LOCAL_ONLY, entity=schedule)
		if self.busy(ACTION_LOAD_ATTENDANCE):
			return self._rejected_busy(ACTION_LOAD_ATTENDANCE)
		with self._in_progress(ACTION_LOAD_ATTENDANCE):
			return await self._fetch_attendance(schedule, silent=False)

	async def _fetch_attendance(self, schedule: ClassSchedule, silent: bool) -> SyncResult:
		try:
			entries = await self.client.attendance.async_list_by_schedule(schedule.id)
		except ClassrollError as err:
			if silent:
				_LOGGER.warning(f"Could not load attendance for schedule {schedule.id}: {err}")
			else:
				self._notify(NOTICE_ERROR, "Refresh failed", f"Could not load attendance: {err}")
			return SyncResult(SyncOutcome.ERROR, str(err))

		schedule.clear_attendances()
		for entry in entries:
			entry.student = self.find_student(entry.student.index_number) or entry.student
			schedule.add_attendance(entry)
		return SyncResult(SyncOutcome.SUCCESS, entity=list(schedule.attendances))

	def mark_attendance(
		self,
		student: Student,
		schedule: ClassSchedule,
		status: AttendanceStatus,
		notes: str = "",
	) -> Attendance:
		"""Record a status locally now; push it if the schedule is confirmed."""
		self._dispatcher.assert_owner()
		existing = schedule.get_attendance_for_student(student)
		if existing is not None:
			existing.notes = notes or existing.notes
			existing.status = status
			attendance = existing
		else:
			attendance = Attendance(student, schedule, status, notes)
			schedule.add_attendance(attendance)
		self.async_update_listeners()
		self._notify(
			NOTICE_INFO, "Attendance", f"Marked {student.full_name} as {status.display_name.lower()}"
		)

		if schedule.id is not None:
			self._spawn(
				(student.index_number, schedule.id),
				lambda notes=attendance.notes: self._push_mark(student, schedule, status, notes),
			)
		else:
			_LOGGER.debug(f"Schedule '{schedule.subject}' is local only; attendance kept locally")
		return attendance

	def clear_attendance(self, student: Student, schedule: ClassSchedule) -> bool:
		"""Remove a student's status locally now; push the removal if confirmed."""
		self._dispatcher.assert_owner()
		removed = schedule.remove_attendance(student)
		self.async_update_listeners()
		self._notify(NOTICE_INFO, "Attendance", f"Cleared attendance of {student.full_name}")

		if schedule.id is not None:
			self._spawn(
				(student.index_number, schedule.id),
				lambda: self._push_clear(student, schedule),
			)
		else:
			_LOGGER.debug(f"Schedule '{schedule.subject}' is local only; removal kept locally")
		return removed

	async def async_clear_all_attendances(self, schedule: ClassSchedule) -> SyncResult:
		"""Clear every attendance entry of a schedule after confirmation."""
		scope = "also on the server" if schedule.is_from_server else "locally"
		if not await self._ask(
			"Clear attendance",
			f"Remove all attendance entries for '{schedule.subject}' ({scope})?",
		):
			return SyncResult(SyncOutcome.CANCELLED)

		with self._in_progress(ACTION_CLEAR_ATTENDANCE):
			entries = list(schedule.attendances)
			schedule.clear_attendances()
			if schedule.id is not None:
				for entry in entries:
					self._spawn(
						(entry.student.index_number, schedule.id),
						lambda s=entry.student: self._push_clear(s, schedule),
					)
		self._notify(NOTICE_INFO, "Attendance", f"Cleared {len(entries)} attendance entries")
		return SyncResult(SyncOutcome.SUCCESS, entity=schedule)

	async def _push_mark(
		self, student: Student, schedule: ClassSchedule, status: AttendanceStatus, notes: str
	) -> bool:
		try:
			sent = await self.client.attendance.async_mark_student(student, schedule.id, status, notes)
		except ClassrollError as err:
			sent = False
			_LOGGER.debug(f"Attendance push failed: {err}")
		if sent:
			_LOGGER.info(f"Attendance sent: {student.full_name} - {status.display_name}")
		else:
			self._notify(
				NOTICE_WARNING,
				"Attendance not sent",
				f"Attendance of {student.full_name} is saved locally only",
			)
		return sent

	async def _push_clear(self, student: Student, schedule: ClassSchedule) -> bool:
		try:
			removed = await self.client.attendance.async_remove(student.index_number, schedule.id)
		except ClassrollError as err:
			removed = False
			_LOGGER.debug(f"Attendance removal failed: {err}")
		if removed:
			_LOGGER.info(f"Attendance removed on server: {student.full_name} / schedule {schedule.id}")
		else:
			self._notify(
				NOTICE_WARNING,
				"Attendance not removed",
				f"Attendance of {student.full_name} was removed locally only. {REFRESH_HINT}",
			)
		return removed

	# Server status

	async def async_check_connection(self) -> bool:
		"""Check the server and publish the connection state."""
		if self.busy(ACTION_CHECK_CONNECTION):
			_LOGGER.debug(f"Ignoring {ACTION_CHECK_CONNECTION}: already in progress")
			return bool(self.connected)
		with self._in_progress(ACTION_CHECK_CONNECTION):
			self.connected = await self.client.groups.async_check_health()
		_LOGGER.debug(f"Server connected: {self.connected}")
		return self.connected

	async def async_fetch_group_stats(self, group_name: str) -> SyncResult:
		try:
			stats: Dict[str, Any] = await self.client.attendance.async_group_stats(group_name)
		except ClassrollError as err:
			self._notify(NOTICE_ERROR, "Statistics unavailable", str(err))
			return SyncResult(SyncOutcome.ERROR, str(err))
		return SyncResult(SyncOutcome.SUCCESS, entity=stats)
