"""FastAPI app for creative sessions and video provider recommendations."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import Body, FastAPI, HTTPException, Path
from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator

from core import RecommendationRequest, SessionPhase
from session import SessionController, UserAction
from utils.exceptions import InvalidTransitionError
from video import configured_providers, get_active_providers, score_providers
from webapp.runtime import get_backend, get_store


logger = logging.getLogger(__name__)

app = FastAPI(title="Mia Creative Studio API")

_ACTION_ADAPTER = TypeAdapter(UserAction)


class CreateSessionPayload(BaseModel):
    channels: List[str] = Field(default_factory=list)
    content_type: str = "post"
    goal: Optional[str] = None

    @field_validator("content_type")
    @classmethod
    def _strip_required(cls, value: str) -> str:
        text = str(value or "").strip()
        if not text:
            raise ValueError("value is required")
        return text

    @field_validator("channels")
    @classmethod
    def _channels(cls, value: List[str]) -> List[str]:
        return [str(item).strip().upper() for item in value if str(item or "").strip()]


class ReviewPayload(BaseModel):
    content: str


def _controller(session_id: str) -> SessionController:
    controller = get_store().get(session_id)
    if controller is None:
        raise HTTPException(status_code=404, detail="session not found")
    return controller


async def _retire(session_id: str) -> None:
    controller = get_store().remove(session_id)
    if controller is None:
        return
    await controller.close()
    logger.info("session_retired session_id=%s", session_id)


def _conflict(exc: InvalidTransitionError) -> HTTPException:
    return HTTPException(
        status_code=409,
        detail={"error": exc.message, "phase": exc.phase, "action": exc.action},
    )


@app.get("/api/health")
def health() -> Dict[str, Any]:
    return {"ok": True, "ts": datetime.now(timezone.utc).isoformat(timespec="seconds")}


@app.post("/api/sessions")
async def create_session(payload: CreateSessionPayload) -> Dict[str, Any]:
    controller = SessionController(
        get_backend(),
        channels=payload.channels,
        content_type=payload.content_type,
        goal=payload.goal,
    )
    session_id = get_store().add(controller)
    state = await controller.start()
    logger.info("session_created session_id=%s content_type=%s", session_id, payload.content_type)
    return {"session_id": session_id, "state": state.snapshot()}


@app.get("/api/sessions")
def list_sessions() -> Dict[str, Any]:
    session_ids = get_store().list_ids()
    return {"sessions": session_ids, "count": len(session_ids)}


@app.get("/api/sessions/{session_id}")
def get_session(session_id: str) -> Dict[str, Any]:
    state = get_store().get_state(session_id)
    if state is None:
        raise HTTPException(status_code=404, detail="session not found")
    return {"session_id": session_id, "state": state.snapshot()}


@app.post("/api/sessions/{session_id}/actions")
async def dispatch_action(session_id: str, body: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
    controller = _controller(session_id)
    try:
        action = _ACTION_ADAPTER.validate_python(body)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors(include_url=False)) from exc
    try:
        state = await controller.dispatch(action)
    except InvalidTransitionError as exc:
        raise _conflict(exc) from exc
    if state.phase == SessionPhase.DONE:
        await _retire(session_id)
    return {"session_id": session_id, "state": state.snapshot()}


@app.post("/api/sessions/{session_id}/sections/{index}/review")
async def review_section(
    session_id: str,
    payload: ReviewPayload,
    index: int = Path(..., ge=0),
) -> Dict[str, Any]:
    controller = _controller(session_id)
    try:
        feedback = await controller.review_section(index, payload.content)
    except InvalidTransitionError as exc:
        raise _conflict(exc) from exc
    return {"session_id": session_id, "feedback": feedback, "state": controller.state.snapshot()}


@app.delete("/api/sessions/{session_id}")
async def close_session(session_id: str) -> Dict[str, Any]:
    if get_store().get(session_id) is None:
        raise HTTPException(status_code=404, detail="session not found")
    await _retire(session_id)
    return {"session_id": session_id, "closed": True}


@app.post("/api/video/recommend")
def recommend(payload: RecommendationRequest) -> Dict[str, Any]:
    result = score_providers(
        goal=payload.goal,
        channels=payload.channels,
        budget_band=payload.budget_band,
        quality_tier=payload.quality_tier,
        duration_seconds=payload.duration_seconds,
    )
    return result.model_dump(mode="json")


@app.get("/api/video/providers")
def list_providers() -> Dict[str, Any]:
    configured = {item.id for item in configured_providers()}
    items = [
        {**provider.model_dump(mode="json"), "configured": provider.id in configured}
        for provider in get_active_providers()
    ]
    return {"providers": items, "count": len(items)}
