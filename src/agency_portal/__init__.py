"""Agency Portal."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("agency-portal")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
