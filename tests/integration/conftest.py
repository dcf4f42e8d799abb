"""Shared fixtures for integration tests against a live course API."""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator

import pytest

from course_sequencer.config import get_settings
from course_sequencer.storage.api_client import CourseApiClient


@pytest.fixture()
def live_course_id() -> str:
    """Course to exercise, from ``COURSE_SEQUENCER_LIVE_COURSE_ID``."""
    course_id = os.environ.get("COURSE_SEQUENCER_LIVE_COURSE_ID")
    if not course_id:
        pytest.skip("COURSE_SEQUENCER_LIVE_COURSE_ID is not set")
    return course_id


@pytest.fixture()
async def live_client() -> AsyncGenerator[CourseApiClient]:
    async with CourseApiClient(get_settings()) as client:
        yield client
