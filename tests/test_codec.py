"""Tests for the classroll wire format."""

from datetime import datetime

import pytest

from classroll.api import codec
from classroll.api.exceptions import ClassrollDecodingError
from classroll.api.models import Attendance, AttendanceStatus, ClassSchedule, Group, Student
from classroll.const import UNKNOWN_GROUP


def make_schedule(group_name="INF-1", id=None):
    return ClassSchedule(
        subject="Algorithms",
        classroom="A-101",
        start_time=datetime(2024, 3, 4, 10, 15, 30, 123456),
        end_time=datetime(2024, 3, 4, 11, 45),
        instructor="Dr Smith",
        notes="bring laptops",
        group_name=group_name,
        id=id,
    )


class TestTimestamps:

    def test_format_drops_fraction(self):
        assert codec.format_wire_datetime(datetime(2024, 3, 4, 10, 15, 30, 999)) == "2024-03-04T10:15:30"
        assert codec.format_wire_datetime(None) is None

    @pytest.mark.parametrize("value,expected", [
        ("2024-03-04T10:15:30", datetime(2024, 3, 4, 10, 15, 30)),
        ("2024-03-04T10:15:30.123456789", datetime(2024, 3, 4, 10, 15, 30, 123456)),
        ("2024-03-04T10:15", datetime(2024, 3, 4, 10, 15)),
        ([2024, 3, 4, 10, 15], datetime(2024, 3, 4, 10, 15)),
        ([2024, 3, 4, 10, 15, 30, 5000000], datetime(2024, 3, 4, 10, 15, 30, 5000)),
    ])
    def test_parse(self, value, expected):
        assert codec.parse_wire_datetime(value) == expected

    def test_parse_timezone_becomes_naive(self):
        parsed = codec.parse_wire_datetime("2024-03-04T10:15:30Z")
        assert parsed.tzinfo is None

    @pytest.mark.parametrize("value", ["", "yesterday", 42, None])
    def test_parse_rejects_garbage(self, value):
        with pytest.raises((ValueError, TypeError)):
            codec.parse_wire_datetime(value)


class TestGroupCodec:

    def test_to_wire(self):
        assert codec.group_to_wire(Group("INF-1", "CS")) == {"name": "INF-1", "specialization": "CS"}

    def test_from_wire(self):
        group = codec.group_from_wire({
            "id": 3, "name": "INF-1", "specialization": "CS", "createdDate": "2024-01-02T08:05:00", "extra": 1,
        })
        assert group.id == 3
        assert group.name == "INF-1"
        assert group.created_at == datetime(2024, 1, 2, 8, 5)

    def test_from_wire_requires_name(self):
        with pytest.raises(ClassrollDecodingError):
            codec.group_from_wire({"specialization": "CS"})

    def test_from_wire_requires_object(self):
        with pytest.raises(ClassrollDecodingError):
            codec.group_from_wire(["INF-1"])


class TestStudentCodec:

    def test_to_wire(self):
        body = codec.student_to_wire(Student("Ann", "Lee", "123456", None))
        assert body == {"firstName": "Ann", "lastName": "Lee", "indexNumber": "123456", "groupName": None}

    def test_update_wire_nests_group(self):
        assert codec.student_to_update_wire(Student("Ann", "Lee", "123456", "INF-1"))["group"] == {"name": "INF-1"}
        assert codec.student_to_update_wire(Student("Ann", "Lee", "123456"))["group"] is None

    def test_from_wire_prefers_nested_group(self):
        student = codec.student_from_wire({
            "firstName": "Ann", "lastName": "Lee", "indexNumber": 123456,
            "group": {"name": "INF-1", "specialization": "CS"},
        })
        assert student.index_number == "123456"
        assert student.group_name == "INF-1"

    def test_from_wire_flat_group_name(self):
        student = codec.student_from_wire({
            "firstName": "Ann", "lastName": "Lee", "indexNumber": "123456", "groupName": "INF-2", "group": None,
        })
        assert student.group_name == "INF-2"

    def test_from_wire_without_group(self):
        student = codec.student_from_wire({"firstName": "Ann", "lastName": "Lee", "indexNumber": "123456"})
        assert student.group_name is None


class TestScheduleCodec:

    def test_to_wire(self):
        body = codec.schedule_to_wire(make_schedule())
        assert body["startTime"] == "2024-03-04T10:15:30"
        assert body["endTime"] == "2024-03-04T11:45:00"
        assert body["group"] == {"name": "INF-1"}

    def test_to_wire_omits_missing_group(self):
        assert "group" not in codec.schedule_to_wire(make_schedule(group_name=None))

    def test_from_wire(self):
        schedule = codec.schedule_from_wire({
            "id": 9, "subject": "Algorithms", "startTime": "2024-03-04T10:15:00",
            "endTime": "2024-03-04T11:45:00", "group": {"name": "INF-1"}, "classroom": None,
        })
        assert schedule.id == 9
        assert schedule.is_from_server
        assert schedule.group_name == "INF-1"
        assert schedule.classroom == ""
        assert schedule.attendances == []

    def test_from_wire_missing_group(self):
        schedule = codec.schedule_from_wire({
            "subject": "Algorithms", "startTime": "2024-03-04T10:15:00", "endTime": "2024-03-04T11:45:00",
        })
        assert schedule.group_name == UNKNOWN_GROUP

    def test_from_wire_bad_timestamp(self):
        with pytest.raises(ClassrollDecodingError):
            codec.schedule_from_wire({"subject": "X", "startTime": "soon", "endTime": "later"})


class TestAttendanceCodec:

    def test_mark_student_body(self):
        body = codec.mark_student_to_wire(Student("Ann", "Lee", "123456"), 9, AttendanceStatus.LATE, None)
        assert body == {
            "firstName": "Ann", "lastName": "Lee", "indexNumber": "123456", "groupName": "",
            "scheduleId": 9, "status": "LATE", "notes": "",
        }

    def test_to_wire(self):
        schedule = make_schedule(id=9)
        attendance = Attendance(
            Student("Ann", "Lee", "123456", "INF-1"), schedule, AttendanceStatus.PRESENT,
            marked_at=datetime(2024, 3, 4, 10, 20),
        )
        body = codec.attendance_to_wire(attendance)
        assert body["scheduleId"] == 9
        assert body["status"] == "PRESENT"
        assert body["markedAt"] == "2024-03-04T10:20:00"
        assert body["student"]["groupName"] == "INF-1"

    def test_from_wire(self):
        attendance = codec.attendance_from_wire({
            "id": 1,
            "student": {"firstName": "Ann", "lastName": "Lee", "indexNumber": "123456"},
            "schedule": {"id": 9, "subject": "Algorithms", "startTime": "2024-03-04T10:15:00",
                         "endTime": "2024-03-04T11:45:00"},
            "status": "LATE",
            "markedAt": "2024-03-04T10:20:00",
        })
        assert attendance.status is AttendanceStatus.LATE
        assert attendance.schedule.id == 9
        assert attendance.marked_at == datetime(2024, 3, 4, 10, 20)


class TestDecodeList:

    def test_decodes_each_item(self):
        groups = codec.decode_list([{"name": "A"}, {"name": "B"}], codec.group_from_wire)
        assert [g.name for g in groups] == ["A", "B"]

    def test_requires_array(self):
        with pytest.raises(ClassrollDecodingError):
            codec.decode_list({"name": "A"}, codec.group_from_wire)
