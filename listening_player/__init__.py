"""Listening Player web app"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("listening-player")
except PackageNotFoundError:
    __version__ = "dev"
