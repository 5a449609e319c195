"""Constants for classroll."""

# Remote store
DEFAULT_BASE_URL = "http://localhost:8080/api"
DEFAULT_CONNECT_TIMEOUT = 10  # seconds
DEFAULT_REQUEST_TIMEOUT = 30
DEFAULT_HEALTH_TIMEOUT = 5

GROUPS_PATH = "/groups"
STUDENTS_PATH = "/students"
SCHEDULES_PATH = "/schedules"
ATTENDANCE_PATH = "/attendance"
HEALTH_PATH = f"{GROUPS_PATH}/health"

DEFAULT_HEADERS = {
	"Content-Type": "application/json",
	"Accept": "application/json",
}

# Environment overrides
ENV_BASE_URL = "CLASSROLL_BASE_URL"
ENV_CONNECT_TIMEOUT = "CLASSROLL_CONNECT_TIMEOUT"
ENV_REQUEST_TIMEOUT = "CLASSROLL_REQUEST_TIMEOUT"
ENV_HEALTH_TIMEOUT = "CLASSROLL_HEALTH_TIMEOUT"

# Formats
WIRE_DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%S"
DISPLAY_DATETIME_FORMAT = "%d.%m.%Y %H:%M"
DISPLAY_TIME_FORMAT = "%H:%M"

INDEX_NUMBER_LENGTH = 6
INDEX_NUMBER_PATTERN = r"^\d{6}$"
TIME_INPUT_PATTERN = r"^\d{2}:\d{2}$"
UNKNOWN_GROUP = "Unknown group"
NOT_MARKED = "Not marked"

# Actions (trigger keys for busy tracking)
ACTION_ADD_GROUP = "add_group"
ACTION_DELETE_GROUP = "delete_group"
ACTION_REFRESH_GROUPS = "refresh_groups"
ACTION_ADD_STUDENT = "add_student"
ACTION_DELETE_STUDENT = "delete_student"
ACTION_ASSIGN_STUDENT = "assign_student"
ACTION_UNASSIGN_STUDENT = "unassign_student"
ACTION_REFRESH_STUDENTS = "refresh_students"
ACTION_ADD_SCHEDULE = "add_schedule"
ACTION_DELETE_SCHEDULE = "delete_schedule"
ACTION_REFRESH_SCHEDULES = "refresh_schedules"
ACTION_LOAD_ATTENDANCE = "load_attendance"
ACTION_CLEAR_ATTENDANCE = "clear_all_attendance"
ACTION_CHECK_CONNECTION = "check_connection"

# Notice levels
NOTICE_INFO = "info"
NOTICE_WARNING = "warning"
NOTICE_ERROR = "error"
