"""Pydantic schemas for request/response validation."""

from .accommodation import *  # noqa: F403
from .common import *  # noqa: F403
from .health import *  # noqa: F403
from .reservation import *  # noqa: F403
from .tour import *  # noqa: F403
