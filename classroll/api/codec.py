"""Wire format for the classroll REST API.

Every entity has an explicit field mapping in both directions. Decoding is
schema-driven (voluptuous) so malformed payloads surface as
ClassrollDecodingError instead of half-filled records.
"""

import logging
import re
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, TypeVar

import voluptuous as vol

from ..const import UNKNOWN_GROUP, WIRE_DATETIME_FORMAT
from .exceptions import ClassrollDecodingError
from .models import Attendance, AttendanceStatus, ClassSchedule, Group, Student

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

_FRACTION_RE = re.compile(r"\.(\d+)")


def format_wire_datetime(value: Optional[datetime]) -> Optional[str]:
	"""Serialise a timestamp as naive local time without fractional seconds."""
	if value is None:
		return None
	return value.strftime(WIRE_DATETIME_FORMAT)


def parse_wire_datetime(value: Any) -> datetime:
	"""Parse an ISO-like timestamp or a [y, m, d, H, M, S, ns] array."""
	if isinstance(value, datetime):
		return value
	if isinstance(value, (list, tuple)) and len(value) >= 3:
		parts = [int(p) for p in value]
		micro = parts[6] // 1000 if len(parts) > 6 else 0
		parts = (parts[:6] + [0, 0, 0])[:6]
		return datetime(*parts, micro)
	if not isinstance(value, str) or not value.strip():
		raise ValueError(f"not a timestamp: {value!r}")

	text = value.strip()
	if text.endswith("Z"):
		text = text[:-1] + "+00:00"
	# fromisoformat accepts at most microsecond precision
	text = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
	parsed = datetime.fromisoformat(text)
	if parsed.tzinfo is not None:
		parsed = parsed.astimezone().replace(tzinfo=None)
	return parsed


def WireDateTime(value: Any) -> datetime:  # pylint: disable=invalid-name
	"""Voluptuous validator wrapping parse_wire_datetime."""
	try:
		return parse_wire_datetime(value)
	except (TypeError, ValueError) as err:
		raise vol.Invalid(f"invalid timestamp {value!r}: {err}") from err


_OPTIONAL_TEXT = vol.Any(None, str)
_OPTIONAL_ID = vol.Any(None, vol.Coerce(int))
_OPTIONAL_TS = vol.Any(None, WireDateTime)

_GROUP_REF_SCHEMA = vol.Any(None, vol.Schema({
	vol.Optional("name"): _OPTIONAL_TEXT,
}, extra=vol.ALLOW_EXTRA))

GROUP_SCHEMA = vol.Schema({
	vol.Required("name"): str,
	vol.Optional("specialization"): _OPTIONAL_TEXT,
	vol.Optional("id"): _OPTIONAL_ID,
	vol.Optional("createdDate"): _OPTIONAL_TS,
}, extra=vol.ALLOW_EXTRA)

STUDENT_SCHEMA = vol.Schema({
	vol.Required("firstName"): str,
	vol.Required("lastName"): str,
	vol.Required("indexNumber"): vol.Coerce(str),
	vol.Optional("groupName"): _OPTIONAL_TEXT,
	vol.Optional("group"): _GROUP_REF_SCHEMA,
	vol.Optional("id"): _OPTIONAL_ID,
	vol.Optional("createdDate"): _OPTIONAL_TS,
}, extra=vol.ALLOW_EXTRA)

SCHEDULE_SCHEMA = vol.Schema({
	vol.Required("subject"): str,
	vol.Required("startTime"): WireDateTime,
	vol.Required("endTime"): WireDateTime,
	vol.Optional("classroom"): _OPTIONAL_TEXT,
	vol.Optional("instructor"): _OPTIONAL_TEXT,
	vol.Optional("notes"): _OPTIONAL_TEXT,
	vol.Optional("group"): _GROUP_REF_SCHEMA,
	vol.Optional("groupName"): _OPTIONAL_TEXT,
	vol.Optional("id"): _OPTIONAL_ID,
	vol.Optional("createdDate"): _OPTIONAL_TS,
}, extra=vol.ALLOW_EXTRA)

ATTENDANCE_SCHEMA = vol.Schema({
	vol.Required("student"): dict,
	vol.Required("schedule"): dict,
	vol.Required("status"): str,
	vol.Optional("notes"): _OPTIONAL_TEXT,
	vol.Optional("markedAt"): _OPTIONAL_TS,
	vol.Optional("id"): _OPTIONAL_ID,
}, extra=vol.ALLOW_EXTRA)


def _validate(schema: vol.Schema, payload: Any, entity: str) -> Dict[str, Any]:
	if not isinstance(payload, dict):
		raise ClassrollDecodingError(f"Expected a JSON object for {entity}, got {type(payload).__name__}")
	try:
		return schema(payload)
	except vol.Invalid as err:
		_LOGGER.debug(f"Rejected {entity} payload {payload!r}: {err}")
		raise ClassrollDecodingError(f"Invalid {entity} payload: {err}") from err


def _group_name(data: Dict[str, Any]) -> Optional[str]:
	group = data.get("group")
	if isinstance(group, dict) and group.get("name"):
		return group["name"]
	return data.get("groupName") or None


# Groups

def group_to_wire(group: Group) -> Dict[str, Any]:
	return {"name": group.name, "specialization": group.specialization}


def group_from_wire(payload: Any) -> Group:
	data = _validate(GROUP_SCHEMA, payload, "group")
	group = Group(
		name=data["name"],
		specialization=data.get("specialization") or "",
		id=data.get("id"),
	)
	if data.get("createdDate"):
		group.created_at = data["createdDate"]
	return group


# Students

def student_to_wire(student: Student) -> Dict[str, Any]:
	return {
		"firstName": student.first_name,
		"lastName": student.last_name,
		"indexNumber": student.index_number,
		"groupName": student.group_name,
	}


def student_to_update_wire(student: Student) -> Dict[str, Any]:
	"""Body for PUT /students/{index}; the server expects a nested group."""
	return {
		"firstName": student.first_name,
		"lastName": student.last_name,
		"indexNumber": student.index_number,
		"group": {"name": student.group_name} if student.has_group else None,
	}


def student_from_wire(payload: Any) -> Student:
	data = _validate(STUDENT_SCHEMA, payload, "student")
	student = Student(
		first_name=data["firstName"],
		last_name=data["lastName"],
		index_number=data["indexNumber"],
		group_name=_group_name(data),
		id=data.get("id"),
	)
	if data.get("createdDate"):
		student.added_at = data["createdDate"]
	return student


# Schedules

def schedule_to_wire(schedule: ClassSchedule) -> Dict[str, Any]:
	body: Dict[str, Any] = {
		"subject": schedule.subject,
		"classroom": schedule.classroom or "",
		"startTime": format_wire_datetime(schedule.start_time),
		"endTime": format_wire_datetime(schedule.end_time),
		"instructor": schedule.instructor or "",
		"notes": schedule.notes or "",
	}
	if schedule.group_name and schedule.group_name.strip():
		body["group"] = {"name": schedule.group_name}
	return body


def schedule_from_wire(payload: Any) -> ClassSchedule:
	data = _validate(SCHEDULE_SCHEMA, payload, "schedule")
	schedule = ClassSchedule(
		subject=data["subject"],
		classroom=data.get("classroom") or "",
		start_time=data["startTime"],
		end_time=data["endTime"],
		instructor=data.get("instructor") or "",
		notes=data.get("notes") or "",
		group_name=_group_name(data) or UNKNOWN_GROUP,
		id=data.get("id"),
	)
	if data.get("createdDate"):
		schedule.created_at = data["createdDate"]
	return schedule


# Attendance

def attendance_to_wire(attendance: Attendance) -> Dict[str, Any]:
	student = attendance.student
	return {
		"student": {
			"firstName": student.first_name,
			"lastName": student.last_name,
			"indexNumber": student.index_number,
			"groupName": student.group_name or "",
		},
		"scheduleId": attendance.schedule.id,
		"status": attendance.status.name,
		"notes": attendance.notes or "",
		"markedAt": format_wire_datetime(attendance.marked_at),
	}


def mark_student_to_wire(
	student: Student, schedule_id: int, status: AttendanceStatus, notes: Optional[str]
) -> Dict[str, Any]:
	return {
		"firstName": student.first_name,
		"lastName": student.last_name,
		"indexNumber": student.index_number,
		"groupName": student.group_name or "",
		"scheduleId": schedule_id,
		"status": status.name,
		"notes": notes or "",
	}


def attendance_from_wire(payload: Any) -> Attendance:
	data = _validate(ATTENDANCE_SCHEMA, payload, "attendance")
	student = student_from_wire(data["student"])
	schedule = schedule_from_wire(data["schedule"])
	return Attendance(
		student=student,
		schedule=schedule,
		status=AttendanceStatus.from_wire(data["status"]),
		notes=data.get("notes") or "",
		marked_at=data.get("markedAt"),
		id=data.get("id"),
	)


def decode_list(payload: Any, decoder: Callable[[Any], T]) -> List[T]:
	"""Decode a JSON array with the given per-item decoder."""
	if not isinstance(payload, list):
		raise ClassrollDecodingError(f"Expected a JSON array, got {type(payload).__name__}")
	return [decoder(item) for item in payload]
