"""Custom exceptions for the classroll client and sync layer."""

from typing import Optional


class ClassrollError(Exception):
	"""Base exception for classroll errors."""
	pass


class ClassrollValidationError(ClassrollError):
	"""Local input check failed; nothing was sent to the server."""
	
	def __init__(self, field: str, message: str) -> None:
		super().__init__(message)
		self.field = field
		self.message = message


class ClassrollConflictError(ClassrollError):
	"""Server reported a duplicate key on create."""
	pass


class ClassrollTransportError(ClassrollError):
	"""Request failed: connection, timeout or unexpected HTTP status."""
	
	def __init__(self, message: str, status: Optional[int] = None) -> None:
		super().__init__(message)
		self.status = status


class ClassrollDecodingError(ClassrollError):
	"""Response body could not be decoded into domain records."""
	pass


class ClassrollNotConfirmedError(ClassrollError):
	"""Entity has no server-assigned id yet."""
	pass


RemoteError = ClassrollTransportError
