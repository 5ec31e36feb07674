"""protoform - runtime schema forms and payload codec for protobuf-style IDLs."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("protoform")
except PackageNotFoundError:
    __version__ = "(local)"
