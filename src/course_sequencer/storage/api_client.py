"""Async client for the course authoring / playback REST API.

All HTTP failures are translated into domain errors in one place
(``_request``): 404 becomes ``NotFoundError``, everything else
(connection errors, timeouts, other error statuses, payloads that do
not validate) becomes ``TransportError``.
"""

from __future__ import annotations

import time
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
import structlog
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from course_sequencer.config import Settings, settings
from course_sequencer.errors import NotFoundError, TransportError
from course_sequencer.models.content import (
    ContentItem,
    ContentKind,
    Evaluation,
    Material,
    Module,
)
from course_sequencer.models.drafts import EvaluationDraft, MaterialDraft
from course_sequencer.models.evaluation import (
    EvaluationResult,
    EvaluationSubmission,
)

logger = structlog.get_logger()

M = TypeVar("M")

_MODULE: TypeAdapter[Module] = TypeAdapter(Module)
_MODULE_LIST: TypeAdapter[list[Module]] = TypeAdapter(list[Module])
_CONTENT_ITEM: TypeAdapter[ContentItem] = TypeAdapter(ContentItem)
_CONTENT_LIST: TypeAdapter[list[ContentItem]] = TypeAdapter(list[ContentItem])
_MATERIAL: TypeAdapter[Material] = TypeAdapter(Material)
_EVALUATION: TypeAdapter[Evaluation] = TypeAdapter(Evaluation)
_RESULT: TypeAdapter[EvaluationResult] = TypeAdapter(EvaluationResult)


def _seg(value: str) -> str:
    """Percent-encode an opaque id for use as one path segment."""
    return quote(str(value), safe="")


#: Resource path segment per content kind.
_ITEM_RESOURCES: dict[ContentKind, str] = {
    ContentKind.MATERIAL: "materials",
    ContentKind.EVALUATION: "evaluations",
}


class CourseApiClient:
    """Thin typed wrapper over the course REST API.

    Usage::

        async with CourseApiClient() as client:
            modules = await client.list_modules(course_id)

    Args:
        config: Settings to read base URL, token and timeout from.
        transport: Optional httpx transport (``httpx.MockTransport``
            in tests).
    """

    def __init__(
        self,
        config: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        config = config or settings
        headers = {"Accept": "application/json"}
        if config.api_token is not None:
            token = config.api_token.get_secret_value()
            headers["Authorization"] = f"Bearer {token}"
        self._http = httpx.AsyncClient(
            base_url=config.api_base_url,
            headers=headers,
            timeout=config.request_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> CourseApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ── Modules ──

    async def list_modules(self, course_id: str) -> list[Module]:
        data = await self._request("GET", f"/courses/{_seg(course_id)}/modules")
        return _validate(_MODULE_LIST, data)

    async def create_module(self, course_id: str, title: str) -> Module:
        data = await self._request(
            "POST", f"/courses/{_seg(course_id)}/modules", json={"title": title}
        )
        return _validate(_MODULE, data)

    async def rename_module(self, course_id: str, module_id: str, title: str) -> Module:
        data = await self._request(
            "PUT",
            f"/courses/{_seg(course_id)}/modules/{_seg(module_id)}",
            json={"title": title},
        )
        return _validate(_MODULE, data)

    async def delete_module(self, course_id: str, module_id: str) -> None:
        path = f"/courses/{_seg(course_id)}/modules/{_seg(module_id)}"
        await self._request("DELETE", path)

    async def reorder_modules(self, course_id: str, ordered_ids: list[str]) -> None:
        await self._request(
            "PUT", f"/courses/{_seg(course_id)}/modules/order", json=ordered_ids
        )

    # ── Module content ──

    async def list_module_content(
        self, module_id: str
    ) -> list[Material | Evaluation]:
        data = await self._request("GET", f"/modules/{_seg(module_id)}/content")
        return _validate(_CONTENT_LIST, data)

    async def reorder_module_content(
        self, module_id: str, ordered_entries: list[dict[str, str]]
    ) -> None:
        await self._request(
            "PUT", f"/modules/{_seg(module_id)}/content/order", json=ordered_entries
        )

    async def create_material(self, module_id: str, draft: MaterialDraft) -> Material:
        data = await self._request(
            "POST",
            f"/modules/{_seg(module_id)}/materials",
            json=draft.model_dump(mode="json", by_alias=True),
        )
        return _validate(_MATERIAL, data)

    async def create_evaluation(
        self, module_id: str, draft: EvaluationDraft
    ) -> Evaluation:
        data = await self._request(
            "POST",
            f"/modules/{_seg(module_id)}/evaluations",
            json=draft.model_dump(mode="json", by_alias=True),
        )
        return _validate(_EVALUATION, data)

    async def rename_item(
        self, module_id: str, item_id: str, kind: ContentKind, title: str
    ) -> Material | Evaluation:
        resource = _ITEM_RESOURCES[ContentKind(kind)]
        data = await self._request(
            "PUT",
            f"/modules/{_seg(module_id)}/{resource}/{_seg(item_id)}",
            json={"title": title},
        )
        if isinstance(data, dict):
            data.setdefault("kind", str(kind))
        return _validate(_CONTENT_ITEM, data)

    async def delete_item(self, module_id: str, item_id: str, kind: ContentKind) -> None:
        resource = _ITEM_RESOURCES[ContentKind(kind)]
        path = f"/modules/{_seg(module_id)}/{resource}/{_seg(item_id)}"
        await self._request("DELETE", path)

    # ── Evaluations ──

    async def get_evaluation(self, module_id: str, evaluation_id: str) -> Evaluation:
        data = await self._request(
            "GET", f"/modules/{_seg(module_id)}/evaluations/{_seg(evaluation_id)}"
        )
        return _validate(_EVALUATION, data)

    async def submit_evaluation(
        self,
        module_id: str,
        evaluation_id: str,
        submission: EvaluationSubmission,
    ) -> EvaluationResult:
        data = await self._request(
            "POST",
            f"/modules/{_seg(module_id)}/evaluations/{_seg(evaluation_id)}/submit",
            json=submission.model_dump(mode="json", by_alias=True),
        )
        return _validate(_RESULT, data)

    # ── Private helpers ──

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and return the decoded JSON body (None if empty)."""
        start = time.perf_counter()
        try:
            response = await self._http.request(method, path, **kwargs)
            logger.debug(
                "api_request",
                method=method,
                path=path,
                status_code=response.status_code,
                latency_ms=int((time.perf_counter() - start) * 1000),
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            logger.warning("api_error_status", method=method, path=path, status=status)
            if status == 404:
                raise NotFoundError(f"{method} {path}: not found") from exc
            raise TransportError(
                f"{method} {path} failed with HTTP {status}", status_code=status
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("api_request_failed", method=method, path=path, error=str(exc))
            raise TransportError(f"{method} {path} failed: {exc}") from exc

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(
                f"{method} {path} returned invalid JSON",
                status_code=response.status_code,
            ) from exc


def _validate(adapter: TypeAdapter[M], data: Any) -> M:
    """Validate an API payload; schema mismatches are transport failures."""
    try:
        return adapter.validate_python(data)
    except PydanticValidationError as exc:
        logger.warning("api_payload_invalid", errors=exc.error_count())
        raise TransportError(f"Malformed API payload: {exc}") from exc
