"""Infrastructure layer for the release catalog."""

from . import repositories
