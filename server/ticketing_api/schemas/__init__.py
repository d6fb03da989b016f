"""Pydantic schemas for request/response validation."""

from .booking import *  # noqa: F403
from .common import *  # noqa: F403
from .event import *  # noqa: F403
from .health import *  # noqa: F403
from .payment import *  # noqa: F403
from .realtime import *  # noqa: F403
from .venue import *  # noqa: F403
