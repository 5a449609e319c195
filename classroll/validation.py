"""Input masks and form validation.

Everything here runs before any network call: a form that fails validation
never reaches the client.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Optional

import voluptuous as vol

from .api.exceptions import ClassrollValidationError
from .const import INDEX_NUMBER_LENGTH, INDEX_NUMBER_PATTERN, TIME_INPUT_PATTERN

_NON_DIGITS = re.compile(r"[^0-9]")
_NON_TIME_CHARS = re.compile(r"[^0-9:]")


def mask_index_number(text: str) -> str:
	"""Keep digits only, at most six of them."""
	return _NON_DIGITS.sub("", text or "")[:INDEX_NUMBER_LENGTH]


def mask_time(text: str) -> str:
	"""Filter typed text towards HH:MM, inserting the colon after the hour."""
	filtered = _NON_TIME_CHARS.sub("", text or "")[:5]
	if len(filtered) == 2 and ":" not in filtered:
		filtered += ":"
	return filtered


def parse_time(text: str) -> time:
	"""Parse strict HH:MM with hours 00-23 and minutes 00-59."""
	if not re.match(TIME_INPUT_PATTERN, text or ""):
		raise ValueError(f"Invalid time format: {text!r}")
	hours, minutes = (int(part) for part in text.split(":"))
	if not (0 <= hours <= 23 and 0 <= minutes <= 59):
		raise ValueError(f"Invalid time values: {text!r}")
	return time(hours, minutes)


def _stripped(value: Any) -> str:
	return str(value).strip() if value is not None else ""


def _non_empty(message: str):
	def validator(value: Any) -> str:
		text = _stripped(value)
		if not text:
			raise vol.Invalid(message)
		return text
	return validator


def _optional_text(value: Any) -> str:
	return _stripped(value)


def _run(schema: vol.Schema, data: Dict[str, Any]) -> Dict[str, Any]:
	try:
		return schema(data)
	except vol.MultipleInvalid as err:
		first = err.errors[0]
		field = str(first.path[0]) if first.path else "form"
		raise ClassrollValidationError(field, first.msg) from err
	except vol.Invalid as err:
		field = str(err.path[0]) if err.path else "form"
		raise ClassrollValidationError(field, err.msg) from err


GROUP_FORM_SCHEMA = vol.Schema({
	vol.Required("name"): _non_empty("Group name must be filled in"),
	vol.Required("specialization"): _non_empty("Specialization must be filled in"),
})

STUDENT_FORM_SCHEMA = vol.Schema({
	vol.Required("first_name"): _non_empty("First name must be filled in"),
	vol.Required("last_name"): _non_empty("Last name must be filled in"),
	vol.Required("index_number"): vol.All(
		_stripped,
		vol.Match(INDEX_NUMBER_PATTERN, msg="Index number must have exactly 6 digits"),
	),
	vol.Optional("group_name", default=None): vol.Any(None, _optional_text),
})


@dataclass
class ScheduleForm:
	"""A schedule form that passed validation."""
	subject: str
	start: datetime
	end: datetime
	classroom: str = ""
	instructor: str = ""
	notes: str = ""


def validate_group_form(name: Any, specialization: Any) -> Dict[str, str]:
	"""Return trimmed group fields or raise ClassrollValidationError."""
	return _run(GROUP_FORM_SCHEMA, {"name": name, "specialization": specialization})


def validate_student_form(
	first_name: Any, last_name: Any, index_number: Any, group_name: Optional[str] = None
) -> Dict[str, Any]:
	"""Return trimmed student fields or raise ClassrollValidationError."""
	data = _run(STUDENT_FORM_SCHEMA, {
		"first_name": first_name,
		"last_name": last_name,
		"index_number": index_number,
		"group_name": group_name,
	})
	data["group_name"] = data.get("group_name") or None
	return data


def validate_schedule_form(
	subject: Any,
	day: Optional[date],
	start_text: Any,
	end_text: Any = "",
	classroom: Any = "",
	instructor: Any = "",
	notes: Any = "",
) -> ScheduleForm:
	"""Validate a schedule form.

	The end time defaults to one hour after the start and otherwise has to
	be later than the start.
	"""
	subject = _stripped(subject)
	if not subject:
		raise ClassrollValidationError("subject", "Schedule name must be filled in")
	if day is None:
		raise ClassrollValidationError("date", "A date must be selected")

	start_text = _stripped(start_text)
	if not start_text:
		raise ClassrollValidationError("start_time", "Start time must be filled in")
	try:
		start_time = parse_time(start_text)
	except ValueError as err:
		raise ClassrollValidationError("start_time", "Invalid start time, use HH:MM (e.g. 10:15)") from err

	start = datetime.combine(day, start_time)
	end_text = _stripped(end_text)
	if not end_text:
		end = start + timedelta(hours=1)
	else:
		try:
			end_time = parse_time(end_text)
		except ValueError as err:
			raise ClassrollValidationError("end_time", "Invalid end time, use HH:MM (e.g. 12:00)") from err
		end = datetime.combine(day, end_time)
		if end <= start:
			raise ClassrollValidationError("end_time", "End time must be later than start time")

	return ScheduleForm(
		subject=subject,
		start=start,
		end=end,
		classroom=_stripped(classroom),
		instructor=_stripped(instructor),
		notes=_stripped(notes),
	)
