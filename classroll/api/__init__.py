"""Python client for the classroll REST API.

Keep package import lightweight; import heavy submodules explicitly where needed.
"""

__all__ = [
	"client",
	"codec",
	"models",
	"exceptions",
]
