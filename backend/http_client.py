"""JSON-over-HTTP studio backend built on httpx."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from config import BackendSettings
from core import (
    AngleCard,
    AssistSectionRequest,
    ContextRequest,
    ContextResult,
    CostEstimate,
    CostEstimateRequest,
    FixSuggestion,
    GeneratedSection,
    GenerateSectionRequest,
    MomentumScore,
    PolishRequest,
    RecommendationRequest,
    RecommendationResult,
    RenderJobSnapshot,
    RenderRequest,
    RenderStartResult,
    ResearchRequest,
    ReviewSectionRequest,
    ReviseSectionRequest,
    ScoreRequest,
)
from utils.exceptions import BackendError, ConfigurationError, MalformedResponseError

from .base import BaseStudioBackend


logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

CONTEXT_PATH = "/api/studio/mia/context"
RESEARCH_PATH = "/api/studio/mia/research"
SECTION_PATH = "/api/studio/mia/generate-section"
RECOMMEND_PATH = "/api/studio/video/recommend"
TEST_RENDER_PATH = "/api/studio/video/test-render"
FULL_RENDER_PATH = "/api/studio/video/render"
ESTIMATE_PATH = "/api/studio/render/estimate"


def _status_path(job_id: str) -> str:
    return f"/api/studio/render/{job_id}/status"


def _job_path(job_id: str) -> str:
    return f"/api/studio/video-jobs/{job_id}"


def _wire(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


def _budget_refusal(response: httpx.Response) -> Optional[RenderStartResult]:
    """A 429, or a failed envelope whose data says budget_exceeded, maps to a budget refusal."""
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if not isinstance(payload, dict):
        payload = {}
    data = payload.get("data")
    refused = response.status_code == 429 or (
        payload.get("success") is False and isinstance(data, dict) and data.get("status") == "budget_exceeded"
    )
    if not refused:
        return None
    return RenderStartResult(status="budget_exceeded", error=str(payload.get("error") or "") or None)


class HttpStudioBackend(BaseStudioBackend):
    """Talks to the studio API routes; one short-lived AsyncClient per call.

    Responses use the ``{success, error, data?}`` envelope. Idempotent GETs retry
    transport errors; POSTs are never retried.
    """

    name = "http"

    def __init__(
        self,
        *,
        settings: Optional[BackendSettings] = None,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout_s: Optional[float] = None,
        max_retries: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_wait: Any = None,
    ) -> None:
        cfg = settings or BackendSettings()
        self.base_url = str(base_url or cfg.base_url or "").strip().rstrip("/")
        if not self.base_url:
            raise ConfigurationError("studio backend base_url is not configured")
        self.api_key = str(api_key if api_key is not None else (cfg.api_key or "")).strip()
        self.timeout_s = float(timeout_s if timeout_s is not None else cfg.timeout_s)
        self.max_retries = max(0, int(max_retries if max_retries is not None else cfg.max_retries))
        self._transport = transport
        self._retry_wait = retry_wait or wait_exponential(multiplier=0.5, min=0.5, max=4)

    # ─── plumbing ──────────────────────────────────────────────────────────

    def _client(self) -> httpx.AsyncClient:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout_s,
            transport=self._transport,
        )

    def _unwrap(self, endpoint: str, response: httpx.Response) -> Dict[str, Any]:
        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.status_code >= 400:
            message = ""
            if isinstance(payload, dict):
                message = str(payload.get("error") or "")
            raise BackendError(
                message or f"http {response.status_code}",
                endpoint=endpoint,
                status_code=response.status_code,
            )
        if not isinstance(payload, dict):
            raise MalformedResponseError(
                "response is not a JSON object",
                endpoint=endpoint,
                status_code=response.status_code,
            )
        if payload.get("success") is False:
            raise BackendError(
                str(payload.get("error") or "request failed"),
                endpoint=endpoint,
                status_code=response.status_code,
            )
        data = payload.get("data", payload)
        if not isinstance(data, dict):
            raise MalformedResponseError("data is not a JSON object", endpoint=endpoint)
        return data

    async def _send(self, endpoint: str, body: Dict[str, Any]) -> httpx.Response:
        try:
            async with self._client() as client:
                return await client.post(endpoint, json=body)
        except httpx.TimeoutException as exc:
            raise BackendError("request timed out", endpoint=endpoint) from exc
        except httpx.TransportError as exc:
            raise BackendError(f"request failed: {exc}", endpoint=endpoint) from exc

    async def _post(self, endpoint: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return self._unwrap(endpoint, await self._send(endpoint, body))

    async def _get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            async with self._client() as client:
                async for attempt in AsyncRetrying(
                    stop=stop_after_attempt(self.max_retries + 1),
                    wait=self._retry_wait,
                    retry=retry_if_exception_type(httpx.TransportError),
                    reraise=True,
                ):
                    with attempt:
                        response = await client.get(endpoint, params=params)
        except httpx.TimeoutException as exc:
            raise BackendError("request timed out", endpoint=endpoint) from exc
        except httpx.TransportError as exc:
            raise BackendError(f"request failed: {exc}", endpoint=endpoint) from exc
        return self._unwrap(endpoint, response)

    @staticmethod
    def _parse(model: Type[ModelT], data: Any, endpoint: str) -> ModelT:
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            logger.error("malformed_response endpoint=%s errors=%s", endpoint, exc.error_count())
            raise MalformedResponseError(
                f"unexpected {model.__name__} shape",
                endpoint=endpoint,
                errors=exc.error_count(),
            ) from exc

    def _parse_list(self, model: Type[ModelT], items: Any, endpoint: str) -> List[ModelT]:
        if items is None:
            return []
        if not isinstance(items, list):
            raise MalformedResponseError(f"expected a list of {model.__name__}", endpoint=endpoint)
        return [self._parse(model, item, endpoint) for item in items]

    # ─── creative session ──────────────────────────────────────────────────

    async def fetch_context(self, request: ContextRequest) -> ContextResult:
        data = await self._post(CONTEXT_PATH, _wire(request))
        return self._parse(ContextResult, data, CONTEXT_PATH)

    async def research_angles(self, request: ResearchRequest) -> List[AngleCard]:
        data = await self._post(RESEARCH_PATH, _wire(request))
        return self._parse_list(AngleCard, data.get("angles"), RESEARCH_PATH)

    async def generate_section(self, request: GenerateSectionRequest) -> GeneratedSection:
        body = {"action": "generate", **_wire(request)}
        data = await self._post(SECTION_PATH, body)
        return self._parse(GeneratedSection, data, SECTION_PATH)

    async def revise_section(self, request: ReviseSectionRequest) -> GeneratedSection:
        body = {"action": "revise", **_wire(request)}
        data = await self._post(SECTION_PATH, body)
        return self._parse(GeneratedSection, data, SECTION_PATH)

    async def assist_section(self, request: AssistSectionRequest) -> GeneratedSection:
        body = {"action": "assist", **_wire(request)}
        data = await self._post(SECTION_PATH, body)
        return self._parse(GeneratedSection, data, SECTION_PATH)

    async def review_section(self, request: ReviewSectionRequest) -> Optional[str]:
        body = {"action": "review", **_wire(request)}
        try:
            data = await self._post(SECTION_PATH, body)
        except BackendError as exc:
            logger.warning("review_failed section=%s error=%s", request.section_type.value, exc.message)
            return None
        feedback = str(data.get("feedback") or "").strip()
        return feedback or None

    async def polish(self, request: PolishRequest) -> List[FixSuggestion]:
        body = {"action": "polish", **_wire(request)}
        data = await self._post(SECTION_PATH, body)
        return self._parse_list(FixSuggestion, data.get("fixes"), SECTION_PATH)

    async def score_momentum(self, request: ScoreRequest) -> MomentumScore:
        body = {"action": "score", **_wire(request)}
        data = await self._post(SECTION_PATH, body)
        return self._parse(MomentumScore, data.get("momentum", data), SECTION_PATH)

    # ─── video ─────────────────────────────────────────────────────────────

    async def recommend(self, request: RecommendationRequest) -> RecommendationResult:
        data = await self._post(RECOMMEND_PATH, _wire(request))
        return self._parse(RecommendationResult, data, RECOMMEND_PATH)

    async def start_render(self, request: RenderRequest) -> RenderStartResult:
        endpoint = TEST_RENDER_PATH if request.render_type == "test" else FULL_RENDER_PATH
        response = await self._send(endpoint, _wire(request))
        refusal = _budget_refusal(response)
        if refusal is not None:
            logger.warning(
                "render_budget_exceeded provider=%s type=%s status=%s",
                request.provider_id,
                request.render_type,
                response.status_code,
            )
            return refusal
        data = self._unwrap(endpoint, response)
        normalized = dict(data)
        normalized.setdefault("jobId", data.get("taskId"))
        result = self._parse(RenderStartResult, normalized, endpoint)
        logger.info(
            "render_start provider=%s type=%s job_id=%s status=%s",
            request.provider_id,
            request.render_type,
            result.job_id,
            result.status,
        )
        return result

    async def get_render_status(self, job_id: str) -> RenderJobSnapshot:
        endpoint = _status_path(job_id)
        data = await self._get(endpoint)
        return self._parse(RenderJobSnapshot, {"jobId": job_id, **data}, endpoint)

    async def get_render_job(self, job_id: str) -> RenderJobSnapshot:
        endpoint = _job_path(job_id)
        data = await self._get(endpoint)
        normalized = {"jobId": job_id, **data}
        normalized.setdefault("errorMessage", data.get("error"))
        normalized.setdefault("outputUrl", data.get("previewUrl"))
        return self._parse(RenderJobSnapshot, normalized, endpoint)

    async def estimate_cost(self, request: CostEstimateRequest) -> CostEstimate:
        data = await self._post(ESTIMATE_PATH, _wire(request))
        return self._parse(CostEstimate, data, ESTIMATE_PATH)
