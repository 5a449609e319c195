"""Async HTTP client for the classroll REST API."""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import aiohttp

from ..config import Settings
from ..const import (
	ATTENDANCE_PATH,
	DEFAULT_HEADERS,
	GROUPS_PATH,
	HEALTH_PATH,
	SCHEDULES_PATH,
	STUDENTS_PATH,
)
from . import codec
from .exceptions import (
	ClassrollConflictError,
	ClassrollDecodingError,
	ClassrollNotConfirmedError,
	ClassrollTransportError,
)
from .models import Attendance, AttendanceStatus, ClassSchedule, Group, Student

_LOGGER = logging.getLogger(__name__)

CREATED_OK = (200, 201)
DELETED_OK = (200, 204)


def _segment(value: Any) -> str:
	"""Encode a value for use as a single URL path segment."""
	return quote(str(value), safe="")


class _EntityClient:
	"""Shared request plumbing for the per-entity clients."""

	def __init__(self, session: aiohttp.ClientSession, settings: Settings) -> None:
		self._session = session
		self._settings = settings
		self._timeout = aiohttp.ClientTimeout(
			total=settings.request_timeout,
			connect=settings.connect_timeout,
		)

	def _url(self, path: str) -> str:
		return f"{self._settings.base_url.rstrip('/')}{path}"

	async def _request(
		self,
		method: str,
		path: str,
		*,
		payload: Any = None,
		params: Optional[Dict[str, str]] = None,
		timeout: Optional[aiohttp.ClientTimeout] = None,
	) -> Tuple[int, str]:
		"""Send a request and return (status, body text).

		Connection problems and timeouts are raised as ClassrollTransportError,
		a body that is not valid text as ClassrollDecodingError; status
		handling is left to the caller.
		"""
		url = self._url(path)
		_LOGGER.debug(f"{method} {url} payload={payload!r}")
		try:
			async with self._session.request(
				method,
				url,
				json=payload,
				params=params,
				headers=DEFAULT_HEADERS,
				timeout=timeout or self._timeout,
			) as resp:
				_LOGGER.debug(f"{method} {url} -> HTTP {resp.status}")
				try:
					body = await resp.text()
				except (UnicodeDecodeError, LookupError) as err:
					raise ClassrollDecodingError(
						f"Undecodable response body from {url} (HTTP {resp.status}): {err}"
					) from err
				return resp.status, body
		except asyncio.TimeoutError as err:
			raise ClassrollTransportError(f"Request to {url} timed out") from err
		except aiohttp.ClientError as err:
			raise ClassrollTransportError(f"Connection error for {url}: {err}") from err

	@staticmethod
	def _load_json(body: str, what: str) -> Any:
		try:
			return json.loads(body)
		except (TypeError, json.JSONDecodeError) as err:
			_LOGGER.error(f"Failed to parse {what} response as JSON: {body[:200]}...")
			raise ClassrollDecodingError(f"Invalid JSON in {what} response: {err}") from err

	@staticmethod
	def _unexpected(what: str, status: int, body: str) -> ClassrollTransportError:
		return ClassrollTransportError(
			f"Failed to {what}: HTTP {status} {body[:200]}".rstrip(),
			status=status,
		)

	async def _get_list(self, path: str, decoder, what: str) -> list:
		status, body = await self._request("GET", path)
		if status != 200:
			raise self._unexpected(what, status, body)
		return codec.decode_list(self._load_json(body, what), decoder)

	async def _delete(self, path: str, what: str) -> bool:
		status, body = await self._request("DELETE", path)
		if status in DELETED_OK:
			return True
		_LOGGER.warning(f"Could not {what}: HTTP {status} {body[:200]}")
		return False


class GroupClient(_EntityClient):
	"""Group endpoints."""

	async def async_list(self) -> List[Group]:
		return await self._get_list(GROUPS_PATH, codec.group_from_wire, "fetch groups")

	async def async_create(self, group: Group) -> Group:
		status, body = await self._request("POST", GROUPS_PATH, payload=codec.group_to_wire(group))
		if status in CREATED_OK:
			if not body.strip():
				return group
			return codec.group_from_wire(self._load_json(body, "create group"))
		if status == 409:
			raise ClassrollConflictError(f"Group '{group.name}' already exists")
		raise self._unexpected("create group", status, body)

	async def async_delete(self, name: str) -> bool:
		return await self._delete(f"{GROUPS_PATH}/{_segment(name)}", f"delete group {name}")

	async def async_check_health(self) -> bool:
		"""Liveness check; never raises."""
		timeout = aiohttp.ClientTimeout(total=self._settings.health_timeout)
		try:
			status, _ = await self._request("GET", HEALTH_PATH, timeout=timeout)
		except Exception as err:  # pylint: disable=broad-except
			_LOGGER.debug(f"Health check failed: {err}")
			return False
		return status == 200


class StudentClient(_EntityClient):
	"""Student endpoints."""

	async def async_list(self) -> List[Student]:
		return await self._get_list(STUDENTS_PATH, codec.student_from_wire, "fetch students")

	async def async_list_by_group(self, group_name: str) -> List[Student]:
		return await self._get_list(
			f"{STUDENTS_PATH}/group/{_segment(group_name)}",
			codec.student_from_wire,
			f"fetch students of group {group_name}",
		)

	async def async_list_without_group(self) -> List[Student]:
		return await self._get_list(
			f"{STUDENTS_PATH}/without-group", codec.student_from_wire, "fetch unassigned students"
		)

	async def async_create(self, student: Student) -> Student:
		status, body = await self._request("POST", STUDENTS_PATH, payload=codec.student_to_wire(student))
		if status in CREATED_OK:
			if not body.strip():
				return student
			return codec.student_from_wire(self._load_json(body, "create student"))
		if status == 409:
			raise ClassrollConflictError(f"Student with index number {student.index_number} already exists")
		raise self._unexpected("create student", status, body)

	async def async_update(self, index_number: str, student: Student) -> Student:
		status, body = await self._request(
			"PUT",
			f"{STUDENTS_PATH}/{_segment(index_number)}",
			payload=codec.student_to_update_wire(student),
		)
		if status != 200:
			raise self._unexpected(f"update student {index_number}", status, body)
		return codec.student_from_wire(self._load_json(body, "update student"))

	async def async_remove_from_group(self, index_number: str) -> Student:
		status, body = await self._request(
			"PUT", f"{STUDENTS_PATH}/remove-from-group/{_segment(index_number)}", payload={}
		)
		if status != 200:
			raise self._unexpected(f"remove student {index_number} from group", status, body)
		return codec.student_from_wire(self._load_json(body, "remove student from group"))

	async def async_delete(self, index_number: str) -> bool:
		return await self._delete(
			f"{STUDENTS_PATH}/{_segment(index_number)}", f"delete student {index_number}"
		)


class ScheduleClient(_EntityClient):
	"""Class schedule endpoints."""

	async def async_list(self) -> List[ClassSchedule]:
		return await self._get_list(SCHEDULES_PATH, codec.schedule_from_wire, "fetch schedules")

	async def async_list_by_group(self, group_name: str) -> List[ClassSchedule]:
		return await self._get_list(
			f"{SCHEDULES_PATH}/group/{_segment(group_name)}",
			codec.schedule_from_wire,
			f"fetch schedules of group {group_name}",
		)

	async def async_create(self, schedule: ClassSchedule) -> ClassSchedule:
		status, body = await self._request("POST", SCHEDULES_PATH, payload=codec.schedule_to_wire(schedule))
		if status in CREATED_OK:
			if not body.strip():
				return schedule
			return codec.schedule_from_wire(self._load_json(body, "create schedule"))
		raise self._unexpected("create schedule", status, body)

	async def async_update(self, schedule: ClassSchedule) -> ClassSchedule:
		if schedule.id is None:
			raise ClassrollNotConfirmedError(f"Schedule '{schedule.subject}' has no server id")
		status, body = await self._request(
			"PUT", f"{SCHEDULES_PATH}/{schedule.id}", payload=codec.schedule_to_wire(schedule)
		)
		if status != 200:
			raise self._unexpected(f"update schedule {schedule.id}", status, body)
		return codec.schedule_from_wire(self._load_json(body, "update schedule"))

	async def async_delete(self, schedule: ClassSchedule) -> bool:
		if schedule.id is None:
			raise ClassrollNotConfirmedError(f"Schedule '{schedule.subject}' has no server id")
		return await self._delete(f"{SCHEDULES_PATH}/{schedule.id}", f"delete schedule {schedule.id}")


class AttendanceClient(_EntityClient):
	"""Attendance endpoints."""

	async def async_mark(self, attendance: Attendance) -> Attendance:
		if attendance.schedule.id is None:
			raise ClassrollNotConfirmedError("Attendance belongs to a local-only schedule")
		status, body = await self._request(
			"POST", f"{ATTENDANCE_PATH}/mark", payload=codec.attendance_to_wire(attendance)
		)
		if status not in CREATED_OK:
			raise self._unexpected("mark attendance", status, body)
		return codec.attendance_from_wire(self._load_json(body, "mark attendance"))

	async def async_mark_student(
		self,
		student: Student,
		schedule_id: int,
		status: AttendanceStatus,
		notes: Optional[str] = "",
	) -> bool:
		http_status, body = await self._request(
			"POST",
			f"{ATTENDANCE_PATH}/mark-student",
			payload=codec.mark_student_to_wire(student, schedule_id, status, notes),
		)
		if http_status not in CREATED_OK:
			_LOGGER.warning(f"Server rejected attendance for {student.index_number}: HTTP {http_status} {body[:200]}")
			return False
		return True

	async def async_list_by_schedule(self, schedule_id: int) -> List[Attendance]:
		return await self._get_list(
			f"{ATTENDANCE_PATH}/schedule/{schedule_id}",
			codec.attendance_from_wire,
			f"fetch attendance of schedule {schedule_id}",
		)

	async def async_list_by_student(self, index_number: str) -> List[Attendance]:
		return await self._get_list(
			f"{ATTENDANCE_PATH}/student/{_segment(index_number)}",
			codec.attendance_from_wire,
			f"fetch attendance of student {index_number}",
		)

	async def async_remove(self, index_number: str, schedule_id: int) -> bool:
		return await self._delete(
			f"{ATTENDANCE_PATH}/remove/{_segment(index_number)}/{schedule_id}",
			f"remove attendance of {index_number} for schedule {schedule_id}",
		)

	async def async_group_stats(self, group_name: str) -> Dict[str, Any]:
		path = f"{ATTENDANCE_PATH}/stats/group/{_segment(group_name)}"
		status, body = await self._request("GET", path)
		if status != 200:
			raise self._unexpected(f"fetch attendance stats of group {group_name}", status, body)
		data = self._load_json(body, "attendance stats")
		if not isinstance(data, dict):
			raise ClassrollDecodingError("Expected a JSON object for attendance stats")
		return data


class ClassrollClient:
	"""Client for the classroll REST API."""

	def __init__(
		self,
		session: Optional[aiohttp.ClientSession] = None,
		settings: Optional[Settings] = None,
	) -> None:
		"""Initialise the client.

		Args:
			session: Optional aiohttp session. If None, one is created on entry
				and closed on exit.
			settings: Connection settings; defaults are used when omitted.
		"""
		self.settings = settings or Settings()
		self._session = session
		self._own_session = session is None
		self.groups: Optional[GroupClient] = None
		self.students: Optional[StudentClient] = None
		self.schedules: Optional[ScheduleClient] = None
		self.attendance: Optional[AttendanceClient] = None
		if session is not None:
			self._build_clients()

	def _build_clients(self) -> None:
		self.groups = GroupClient(self._session, self.settings)
		self.students = StudentClient(self._session, self.settings)
		self.schedules = ScheduleClient(self._session, self.settings)
		self.attendance = AttendanceClient(self._session, self.settings)

	async def __aenter__(self) -> "ClassrollClient":
		if self._own_session and self._session is None:
			self._session = aiohttp.ClientSession()
			self._build_clients()
		return self

	async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
		await self.close()

	async def close(self) -> None:
		if self._own_session and self._session is not None:
			try:
				await self._session.close()
			except Exception as err:  # pylint: disable=broad-except
				_LOGGER.warning(f"Error closing aiohttp session: {err}")
			finally:
				self._session = None
