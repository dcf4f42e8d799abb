"""Remote persistence (course API) and client-local learner state."""

from course_sequencer.storage.api_client import CourseApiClient
from course_sequencer.storage.position_store import (
    InMemoryPositionStore,
    JsonFilePositionStore,
    PositionStore,
    position_key,
)

__all__ = [
    "CourseApiClient",
    "InMemoryPositionStore",
    "JsonFilePositionStore",
    "PositionStore",
    "position_key",
]
