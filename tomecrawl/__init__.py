"""Tomecrawl: assemble a paginated web book into one ordered text file."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("tomecrawl")
except PackageNotFoundError:
    __version__ = "0.0.0+dev"
