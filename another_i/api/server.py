# another_i/api/server.py
"""
FastAPI server for Another I.

Thin proxy routes in front of the LLM client so a browser front end never
talks to vendors directly:

- /api/chat      : chat completion (demo reply when no settings)
- /api/summarize : thought-document summary (local template when no settings)
- /api/title     : short AI title for a first message
- /api/models    : model list for a provider + key
- /health        : basic health check

Error contracts mirror what the front end expects: chat failures come back
as a displayable warning with HTTP 200, summarize failures as HTTP 500 with
the local summary so the editor still has something to show.
"""

import time
import uuid
from typing import List, Literal, Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from another_i.clients.llm_client import LLMClient, ProviderError
from another_i.config.settings import load_settings
from another_i.config.strings import PROVIDER_ERROR_TEMPLATE
from another_i.core.document import cap_messages, synthesize
from another_i.core.models import AIProvider, AISettings
from another_i.utils.logging import get_logger

logger = get_logger(__name__)
_settings = load_settings()

app = FastAPI(
    title="Another I API",
    description="Local proxy for chat completion, summarization, titles and model listing.",
    version="0.1.0",
)

# Single client instance shared by all requests
llm_client = LLMClient()


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class WireMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class SettingsPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    provider: AIProvider
    api_key: str = Field(..., alias="apiKey")
    model: str

    def to_settings(self) -> AISettings:
        return AISettings(provider=self.provider, api_key=self.api_key, model=self.model)


class ChatRequest(BaseModel):
    messages: List[WireMessage]
    settings: Optional[SettingsPayload] = None


class ChatResponse(BaseModel):
    message: str
    is_demo: bool = Field(..., serialization_alias="isDemo")
    provider: str
    error: Optional[str] = None


class SummarizeRequest(BaseModel):
    messages: List[WireMessage]
    settings: Optional[SettingsPayload] = None


class SummarizeResponse(BaseModel):
    summary: str
    is_demo: bool = Field(..., serialization_alias="isDemo")
    error: Optional[str] = None


class TitleRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = None
    model: str
    api_key: str = Field(..., alias="apiKey")
    provider: AIProvider


class TitleResponse(BaseModel):
    title: str


class ModelsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    provider: str
    api_key: Optional[str] = Field(default=None, alias="apiKey")


class ModelEntry(BaseModel):
    id: str
    name: str


class ModelsResponse(BaseModel):
    models: List[ModelEntry]


def _wire(messages: List[WireMessage], limit: int) -> List[dict]:
    return cap_messages([m.model_dump() for m in messages], limit)


def _error_body(message: str) -> dict:
    return {"error": {"message": message}}


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.post("/api/chat", response_model=ChatResponse)
def chat(req: ChatRequest) -> ChatResponse:
    request_id = str(uuid.uuid4())
    start_time = time.monotonic()
    payload = _wire(req.messages, _settings.max_chat_messages)
    settings = req.settings.to_settings() if req.settings else None
    logger.info("[api_chat] request_id=%s msg_count=%d configured=%s", request_id, len(payload), settings is not None)

    try:
        result = llm_client.complete(payload, settings)
    except ProviderError as e:
        logger.error("[api_chat] request_id=%s provider error code=%s err=%s", request_id, e.code, e)
        # 200 so the warning is displayed in the transcript
        return ChatResponse(
            message=PROVIDER_ERROR_TEMPLATE.format(error=str(e)),
            is_demo=True,
            provider="error",
            error=str(e),
        )

    latency_ms = int((time.monotonic() - start_time) * 1000)
    logger.info("[api_chat] request_id=%s OK latency_ms=%d provider=%s", request_id, latency_ms, result.provider)
    return ChatResponse(message=result.text, is_demo=result.is_fallback, provider=result.provider)


@app.post("/api/summarize", response_model=SummarizeResponse)
def summarize(req: SummarizeRequest):
    request_id = str(uuid.uuid4())
    payload = _wire(req.messages, _settings.max_summary_messages)
    settings = req.settings.to_settings() if req.settings else None
    logger.info("[api_summarize] request_id=%s msg_count=%d", request_id, len(payload))

    try:
        summary = llm_client.summarize(payload, settings)
    except ProviderError as e:
        logger.error("[api_summarize] request_id=%s provider error code=%s err=%s", request_id, e.code, e)
        body = SummarizeResponse(summary=synthesize(payload), is_demo=True, error=str(e))
        return JSONResponse(status_code=500, content=body.model_dump(by_alias=True))

    return SummarizeResponse(summary=summary, is_demo=settings is None)


@app.post("/api/title", response_model=TitleResponse)
def title(req: TitleRequest):
    request_id = str(uuid.uuid4())
    if not (req.message or "").strip():
        return JSONResponse(status_code=400, content=_error_body("Message is required"))

    settings = AISettings(provider=req.provider, api_key=req.api_key, model=req.model)
    try:
        generated = llm_client.title_for(req.message, settings)
    except (ProviderError, ValueError) as e:
        logger.error("[api_title] request_id=%s failed: %s", request_id, e)
        return JSONResponse(status_code=500, content=_error_body(str(e) or "Failed to generate title"))

    logger.info("[api_title] request_id=%s OK title=%r", request_id, generated)
    return TitleResponse(title=generated)


@app.post("/api/models", response_model=ModelsResponse)
def models(req: ModelsRequest):
    if not (req.api_key or "").strip():
        return JSONResponse(status_code=400, content={"error": "API key required"})
    try:
        provider = AIProvider(req.provider)
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Unknown provider"})

    listed = llm_client.list_models(provider, req.api_key)
    return ModelsResponse(models=[ModelEntry(id=m.id, name=m.name) for m in listed])


@app.get("/health")
def health_check() -> dict:
    """
    Very simple health check endpoint.
    """
    return {"status": "ok"}
