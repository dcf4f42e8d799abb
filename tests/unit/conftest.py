"""Fixtures wiring the API client to the in-memory course backend."""

from __future__ import annotations

from collections.abc import AsyncIterator

import httpx
import pytest
from fake_backend import BASE_URL, FakeCourseBackend

from course_sequencer.config import Settings
from course_sequencer.storage.api_client import CourseApiClient


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        api_base_url=BASE_URL,
        api_token="test-token",  # type: ignore[arg-type]
        _env_file=None,  # type: ignore[call-arg]
    )


@pytest.fixture
def backend() -> FakeCourseBackend:
    return FakeCourseBackend()


@pytest.fixture
async def api_client(
    backend: FakeCourseBackend, test_settings: Settings
) -> AsyncIterator[CourseApiClient]:
    client = CourseApiClient(
        test_settings, transport=httpx.MockTransport(backend.handle)
    )
    yield client
    await client.aclose()
