# another_i/clients/llm_client.py
#
# Single integration layer for the three LLM vendors (OpenAI, Anthropic,
# Gemini). Everything above this module sees four capabilities:
#
#   complete(messages, settings?)   -> CompletionResult
#   summarize(messages, settings?)  -> str
#   title_for(message, settings)    -> str
#   list_models(provider, api_key)  -> [ModelInfo]
#
# Absent settings means demo mode: no network, canned output.
# Each vendor call is a single attempt; callers own the fallback.
# API keys travel in headers, never in URLs, and are never logged.

from dataclasses import dataclass
import hashlib
import random
import re
import time
from typing import Any, Dict, List, Optional, Sequence

import openai
from openai import OpenAI
import requests

from another_i.config import strings
from another_i.config.settings import (
    AI_TITLE_MAX_CHARS,
    CHAT_PROMPT_PATH,
    SUMMARY_PROMPT_PATH,
    TITLE_PROMPT_PATH,
    load_settings,
)
from another_i.core.document import cap_messages, synthesize
from another_i.core.models import AIProvider, AISettings, ModelInfo, is_configured
from another_i.utils.logging import get_logger

logger = get_logger(__name__)
_settings = load_settings()

ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

CHAT_TEMPERATURE = 0.7
SUMMARY_TEMPERATURE = 0.3
TITLE_TEMPERATURE = 0.5
TITLE_MAX_TOKENS = 50

OPENAI_MODEL_LIMIT = 15
GEMINI_MODEL_LIMIT = 20
_OPENAI_FAMILY_ORDER = ("o3", "o1", "gpt-4o", "gpt-4", "gpt-3.5")

ANTHROPIC_MODELS = [
    ModelInfo("claude-3-5-sonnet-20241022", "Claude 3.5 Sonnet"),
    ModelInfo("claude-3-5-haiku-20241022", "Claude 3.5 Haiku"),
    ModelInfo("claude-3-opus-20240229", "Claude 3 Opus"),
    ModelInfo("claude-3-sonnet-20240229", "Claude 3 Sonnet"),
    ModelInfo("claude-3-haiku-20240307", "Claude 3 Haiku"),
]

DEFAULT_MODELS: Dict[AIProvider, List[ModelInfo]] = {
    AIProvider.OPENAI: [
        ModelInfo("gpt-4o", "GPT-4o"),
        ModelInfo("gpt-4o-mini", "GPT-4o Mini"),
        ModelInfo("gpt-4-turbo", "GPT-4 Turbo"),
        ModelInfo("gpt-3.5-turbo", "GPT-3.5 Turbo"),
    ],
    AIProvider.ANTHROPIC: ANTHROPIC_MODELS[:3],
    AIProvider.GEMINI: [
        ModelInfo("gemini-2.0-flash", "Gemini 2.0 Flash"),
        ModelInfo("gemini-1.5-pro", "Gemini 1.5 Pro"),
        ModelInfo("gemini-1.5-flash", "Gemini 1.5 Flash"),
    ],
}


class ProviderError(RuntimeError):
    """A vendor call failed (transport, HTTP status or payload shape)."""

    def __init__(self, message: str, code: str = "unknown", provider: Optional[str] = None) -> None:
        super().__init__(message)
        self.code = code
        self.provider = provider


@dataclass
class CompletionResult:
    text: str
    is_fallback: bool
    provider: str


# ---------------------------------------------------------------------------
# Diagnostics helpers
# ---------------------------------------------------------------------------

def _mk_req_id(prefix: str = "req") -> str:
    return f"{prefix}_{int(time.time()*1000)}_{random.randint(1000, 9999)}"


def _snippet(text: str, limit: int = 240) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


def _code_for_status(status: int) -> str:
    if status in (401, 403):
        return "auth"
    if status == 429:
        return "rate_limit"
    if status in (408, 504):
        return "timeout"
    return f"http_{status}"


def _classify_openai_error(e: Exception) -> str:
    if isinstance(e, openai.AuthenticationError):
        return "auth"
    if isinstance(e, openai.RateLimitError):
        return "rate_limit"
    if isinstance(e, openai.APITimeoutError):
        return "timeout"
    if isinstance(e, openai.APIConnectionError):
        return "network"
    if isinstance(e, openai.APIStatusError):
        return _code_for_status(e.status_code)
    return "unknown"


# ---------------------------------------------------------------------------
# Prompt loader
# ---------------------------------------------------------------------------

def load_prompt(path) -> str:
    """
    Load an instruction template. Executed once at import-time.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            prompt = f.read().strip()
    except OSError as e:
        logger.error(f"Failed to load prompt from {path}: {e}")
        raise
    if not prompt:
        raise RuntimeError(f"Prompt file is empty: {path}")
    return prompt


CHAT_SYSTEM_PROMPT = load_prompt(CHAT_PROMPT_PATH)
SUMMARY_PROMPT = load_prompt(SUMMARY_PROMPT_PATH)
TITLE_PROMPT = load_prompt(TITLE_PROMPT_PATH)


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def demo_response(messages: Sequence[Dict[str, str]]) -> str:
    """
    Canned reply for demo mode. Keyword matches win; otherwise the reply is
    picked by a stable hash of the last user message.
    """
    last_user = next((m.get("content") or "" for m in reversed(messages) if m.get("role") == "user"), "")
    for keywords, reply in strings.DEMO_KEYWORD_RESPONSES:
        if any(k in last_user for k in keywords):
            return reply
    digest = hashlib.sha256(last_user.encode("utf-8")).hexdigest()
    return strings.DEMO_RESPONSES[int(digest, 16) % len(strings.DEMO_RESPONSES)]


_TITLE_STRIP_RE = re.compile(r"['\"「」『』\[\]\r\n]")


def sanitize_title(raw: str, limit: int = AI_TITLE_MAX_CHARS) -> str:
    return _TITLE_STRIP_RE.sub("", raw or "").strip()[:limit]


def format_model_name(model_id: str) -> str:
    name = model_id.replace("models/", "").replace("-", " ")
    name = re.sub(r"\b\w", lambda m: m.group(0).upper(), name)
    return name.replace("Gpt", "GPT", 1).replace("O1", "o1", 1).replace("O3", "o3", 1)


def transcript_text(messages: Sequence[Dict[str, str]]) -> str:
    return "\n\n".join(
        f"{strings.TRANSCRIPT_USER_LABEL if m.get('role') == 'user' else strings.TRANSCRIPT_ASSISTANT_LABEL}: {m.get('content', '')}"
        for m in messages
    )


def _gemini_version(model_id: str) -> float:
    match = re.search(r"gemini-(\d+\.?\d*)", model_id)
    return float(match.group(1)) if match else 0.0


def _gemini_tier(model_id: str) -> int:
    if "pro" in model_id:
        return 3
    if "flash" in model_id:
        return 2
    return 1


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class LLMClient:
    def __init__(
        self,
        timeout_seconds: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
        max_chat_messages: Optional[int] = None,
        max_summary_messages: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.timeout = timeout_seconds or _settings.http_timeout_seconds
        self.max_output_tokens = max_output_tokens or _settings.max_output_tokens
        self.max_chat_messages = max_chat_messages or _settings.max_chat_messages
        self.max_summary_messages = max_summary_messages or _settings.max_summary_messages
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": "another-i/llm-client (requests)"})

    # ----- transport -----

    def _post_json(self, vendor: str, url: str, payload: Dict[str, Any], headers: Dict[str, str]) -> Dict[str, Any]:
        try:
            resp = self.session.post(url, json=payload, headers=headers, timeout=self.timeout)
        except requests.Timeout as e:
            raise ProviderError(f"{vendor} request timed out", "timeout", vendor) from e
        except requests.RequestException as e:
            raise ProviderError(f"{vendor} request failed: {e}", "network", vendor) from e
        return self._read_json(vendor, resp)

    def _read_json(self, vendor: str, resp: requests.Response) -> Dict[str, Any]:
        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not resp.ok:
            err = data.get("error") if isinstance(data, dict) else None
            detail = err.get("message") if isinstance(err, dict) else err if isinstance(err, str) else None
            raise ProviderError(
                detail or f"{vendor} API error: {resp.status_code}",
                _code_for_status(resp.status_code),
                vendor,
            )
        if not isinstance(data, dict):
            raise ProviderError(f"{vendor} returned a non-object payload", "bad_response", vendor)
        return data

    def _openai_chat(
        self,
        settings: AISettings,
        system: str,
        messages: List[Dict[str, str]],
        temperature: float,
        max_tokens: Optional[int],
    ) -> str:
        client = OpenAI(api_key=settings.api_key, timeout=self.timeout, max_retries=0)
        kwargs: Dict[str, Any] = {}
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens
        try:
            resp = client.chat.completions.create(
                model=settings.model,
                messages=[{"role": "system", "content": system}] + messages,
                temperature=temperature,
                **kwargs,
            )
        except openai.OpenAIError as e:
            raise ProviderError(str(e), _classify_openai_error(e), "openai") from e
        try:
            return resp.choices[0].message.content or ""
        except (AttributeError, IndexError) as e:
            raise ProviderError("OpenAI returned an unexpected payload", "bad_response", "openai") from e

    def _anthropic_chat(
        self,
        settings: AISettings,
        system: str,
        messages: List[Dict[str, str]],
        temperature: float,
        max_tokens: Optional[int],
    ) -> str:
        data = self._post_json(
            "Anthropic",
            ANTHROPIC_MESSAGES_URL,
            {
                "model": settings.model,
                "max_tokens": max_tokens or self.max_output_tokens,
                "system": system,
                "temperature": temperature,
                "messages": [
                    {"role": "assistant" if m["role"] == "assistant" else "user", "content": m["content"]}
                    for m in messages
                ],
            },
            {
                "Content-Type": "application/json",
                "x-api-key": settings.api_key,
                "anthropic-version": ANTHROPIC_VERSION,
            },
        )
        try:
            return data["content"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError("Anthropic returned an unexpected payload", "bad_response", "anthropic") from e

    def _gemini_chat(
        self,
        settings: AISettings,
        system: str,
        messages: List[Dict[str, str]],
        temperature: float,
        max_tokens: Optional[int],
    ) -> str:
        generation_config: Dict[str, Any] = {"temperature": temperature}
        if max_tokens is not None:
            generation_config["maxOutputTokens"] = max_tokens
        data = self._post_json(
            "Gemini",
            f"{GEMINI_BASE_URL}/models/{settings.model}:generateContent",
            {
                "contents": [
                    {"role": "model" if m["role"] == "assistant" else "user", "parts": [{"text": m["content"]}]}
                    for m in messages
                ],
                "generationConfig": generation_config,
                "systemInstruction": {"parts": [{"text": system}]},
            },
            {"Content-Type": "application/json", "x-goog-api-key": settings.api_key},
        )

        candidates = data.get("candidates") or []
        if not candidates:
            reason = (data.get("promptFeedback") or {}).get("blockReason")
            if reason:
                raise ProviderError(strings.GEMINI_BLOCKED.format(reason=reason), "blocked", "gemini")
            raise ProviderError(strings.GEMINI_EMPTY, "empty_response", "gemini")

        candidate = candidates[0]
        finish = candidate.get("finishReason")
        if finish and finish != "STOP":
            raise ProviderError(
                strings.GEMINI_FINISH_REASONS.get(finish, f"終了理由: {finish}"),
                "blocked" if finish in ("SAFETY", "RECITATION") else "empty_response",
                "gemini",
            )
        try:
            text = candidate["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(strings.GEMINI_EMPTY, "empty_response", "gemini") from e
        return text

    def _dispatch(
        self,
        kind: str,
        settings: AISettings,
        system: str,
        messages: List[Dict[str, str]],
        temperature: float,
        max_tokens: Optional[int] = None,
    ) -> str:
        adapters = {
            AIProvider.OPENAI: self._openai_chat,
            AIProvider.ANTHROPIC: self._anthropic_chat,
            AIProvider.GEMINI: self._gemini_chat,
        }
        adapter = adapters.get(settings.provider)
        if adapter is None:
            raise ProviderError(f"Unknown provider: {settings.provider!r}", "unknown_provider")

        req_id = _mk_req_id(kind)
        logger.info(
            "[%s] req_id=%s start provider=%s model=%s msg_count=%d",
            kind, req_id, settings.provider.value, settings.model, len(messages),
        )
        t0 = time.monotonic()
        try:
            text = adapter(settings, system, messages, temperature, max_tokens)
        except ProviderError as e:
            dt_ms = int((time.monotonic() - t0) * 1000)
            logger.warning(
                "[%s] req_id=%s FAIL latency_ms=%d provider=%s code=%s err=%s",
                kind, req_id, dt_ms, settings.provider.value, e.code, str(e),
            )
            raise

        dt_ms = int((time.monotonic() - t0) * 1000)
        text = (text or "").strip()
        if not text:
            logger.warning("[%s] req_id=%s empty reply latency_ms=%d", kind, req_id, dt_ms)
            raise ProviderError("Empty response from model", "empty_response", settings.provider.value)
        logger.info("[%s] req_id=%s OK latency_ms=%d reply=%r", kind, req_id, dt_ms, _snippet(text))
        return text

    # ----- capabilities -----

    def complete(self, messages: Sequence[Dict[str, str]], settings: Optional[AISettings] = None) -> CompletionResult:
        """
        Chat completion. Demo mode answers locally; vendor failures raise
        ProviderError.
        """
        if not is_configured(settings):
            return CompletionResult(text=demo_response(messages), is_fallback=True, provider="demo")
        payload = cap_messages(messages, self.max_chat_messages)
        text = self._dispatch("chat", settings, CHAT_SYSTEM_PROMPT, payload, CHAT_TEMPERATURE)
        return CompletionResult(text=text, is_fallback=False, provider=settings.provider.value)

    def summarize(self, messages: Sequence[Dict[str, str]], settings: Optional[AISettings] = None) -> str:
        if not is_configured(settings):
            return synthesize(messages)
        payload = cap_messages(messages, self.max_summary_messages)
        return self._dispatch(
            "summarize",
            settings,
            SUMMARY_PROMPT,
            [{"role": "user", "content": transcript_text(payload)}],
            SUMMARY_TEMPERATURE,
        )

    def title_for(self, message: str, settings: AISettings) -> str:
        """No demo fallback: only meaningful with a configured provider."""
        if not is_configured(settings):
            raise ProviderError("Title generation requires AI settings", "auth")
        if not (message or "").strip():
            raise ValueError("Message is required")
        raw = self._dispatch(
            "title",
            settings,
            TITLE_PROMPT,
            [{"role": "user", "content": message}],
            TITLE_TEMPERATURE,
            max_tokens=TITLE_MAX_TOKENS,
        )
        title = sanitize_title(raw)
        if not title:
            raise ProviderError("Title was empty after cleanup", "empty_response", settings.provider.value)
        return title

    def fetch_models(self, provider: AIProvider, api_key: str) -> List[ModelInfo]:
        """Vendor model list; raises ProviderError on failure."""
        provider = AIProvider(provider)
        if provider is AIProvider.OPENAI:
            return self._fetch_openai_models(api_key)
        if provider is AIProvider.ANTHROPIC:
            # Anthropic has no public listing endpoint for this use
            return list(ANTHROPIC_MODELS)
        return self._fetch_gemini_models(api_key)

    def list_models(self, provider: AIProvider, api_key: str) -> List[ModelInfo]:
        """Like fetch_models, but never fails: falls back to the built-in list."""
        provider = AIProvider(provider)
        try:
            models = self.fetch_models(provider, api_key)
        except (ProviderError, ValueError) as e:
            logger.warning("Model listing failed for %s; using defaults. err=%s", provider.value, e)
            return list(DEFAULT_MODELS[provider])
        return models or list(DEFAULT_MODELS[provider])

    def configure_provider(self, provider: AIProvider, api_key: str) -> AISettings:
        """Build settings for a provider, defaulting to its first listed model."""
        provider = AIProvider(provider)
        models = self.list_models(provider, api_key)
        return AISettings(provider=provider, api_key=api_key.strip(), model=models[0].id if models else "")

    def _fetch_openai_models(self, api_key: str) -> List[ModelInfo]:
        client = OpenAI(api_key=api_key, timeout=self.timeout, max_retries=0)
        try:
            ids = [m.id for m in client.models.list()]
        except openai.OpenAIError as e:
            raise ProviderError("Failed to fetch OpenAI models", _classify_openai_error(e), "openai") from e

        def family(model_id: str) -> int:
            return next((i for i, prefix in enumerate(_OPENAI_FAMILY_ORDER) if prefix in model_id), -1)

        chat_ids = [i for i in ids if any(k in i for k in ("gpt-4", "gpt-3.5", "o1", "o3"))]
        chat_ids.sort(key=family)
        seen = set()
        unique: List[ModelInfo] = []
        for model_id in chat_ids:
            if model_id in seen:
                continue
            seen.add(model_id)
            unique.append(ModelInfo(model_id, format_model_name(model_id)))
        return unique[:OPENAI_MODEL_LIMIT]

    def _fetch_gemini_models(self, api_key: str) -> List[ModelInfo]:
        try:
            resp = self.session.get(
                f"{GEMINI_BASE_URL}/models",
                headers={"x-goog-api-key": api_key},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ProviderError("Failed to fetch Gemini models", "network", "gemini") from e
        data = self._read_json("Gemini", resp)

        models: List[ModelInfo] = []
        for raw in data.get("models") or []:
            name = raw.get("name") or ""
            if "generateContent" not in (raw.get("supportedGenerationMethods") or []) or "gemini" not in name:
                continue
            model_id = name.replace("models/", "")
            models.append(ModelInfo(model_id, raw.get("displayName") or format_model_name(name)))
        models.sort(key=lambda m: (-_gemini_version(m.id), -_gemini_tier(m.id)))
        return models[:GEMINI_MODEL_LIMIT]
