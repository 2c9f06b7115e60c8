from __future__ import annotations

import json
import os
import sys
import threading
from typing import Any, Iterator
from urllib.parse import urlparse

import httpx

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_IMAGE_MODEL = "gpt-image-1"
DEFAULT_TTS_MODEL = "gpt-4o-mini-tts"
DEFAULT_TTS_VOICE = "coral"
DEFAULT_OPENAI_BASE = "https://api.openai.com/v1"
DEFAULT_TIMEOUT_SECONDS = 240
PROBE_TIMEOUT_SECONDS = 3.0

# The speech endpoint returns raw 16-bit little-endian mono PCM at this rate.
SPEECH_SAMPLE_RATE = 24000

IMAGE_SIZES = {
    "1:1": "1024x1024",
    "16:9": "1536x1024",
    "2:3": "1024x1536",
}


class LLMError(RuntimeError):
    """A generative request failed or returned nothing usable."""


def get_base_url() -> str:
    return os.getenv("KOTHABOLI_BASE_URL", DEFAULT_OPENAI_BASE)


def get_api_key() -> str | None:
    return os.getenv("OPENAI_API_KEY")


def get_default_model() -> str:
    return os.getenv("KOTHABOLI_MODEL", DEFAULT_MODEL)


def get_image_model() -> str:
    return os.getenv("KOTHABOLI_IMAGE_MODEL", DEFAULT_IMAGE_MODEL)


def get_tts_model() -> str:
    return os.getenv("KOTHABOLI_TTS_MODEL", DEFAULT_TTS_MODEL)


def get_tts_voice() -> str:
    return os.getenv("KOTHABOLI_TTS_VOICE", DEFAULT_TTS_VOICE)


def get_backend_setting() -> str:
    return os.getenv("KOTHABOLI_BACKEND", "auto").lower()


def get_timeout_seconds() -> float:
    raw = os.getenv("KOTHABOLI_TIMEOUT_SECONDS")
    if raw is None:
        return float(DEFAULT_TIMEOUT_SECONDS)
    try:
        return float(int(raw))
    except ValueError as exc:
        raise ValueError("KOTHABOLI_TIMEOUT_SECONDS must be an integer") from exc


def debug_enabled() -> bool:
    value = os.getenv("KOTHABOLI_DEBUG_LLM", "")
    return value.lower() in {"1", "true", "yes", "on"}


def debug_log(message: str) -> None:
    print(message, file=sys.stderr)


def ensure_openai_base(base_url: str) -> str:
    normalized = base_url.rstrip("/")
    parsed = urlparse(normalized)
    if "/v1" in parsed.path:
        return normalized
    return f"{normalized}/v1"


def resolve_backend(base_url: str, backend: str) -> tuple[str, str]:
    normalized = base_url.rstrip("/")
    backend = backend.lower()
    if backend not in {"openai", "ollama", "auto"}:
        raise ValueError("KOTHABOLI_BACKEND must be one of: openai, ollama, auto")

    if backend == "openai":
        return "openai", ensure_openai_base(normalized)
    if backend == "ollama":
        return "ollama", normalized

    parsed = urlparse(normalized)
    if "/v1" in parsed.path:
        return "openai", ensure_openai_base(normalized)

    probe_url = f"{normalized}/v1/models"
    if probe_openai_models(probe_url):
        return "openai", ensure_openai_base(normalized)
    return "ollama", normalized


def probe_openai_models(url: str) -> bool:
    try:
        with httpx.Client(timeout=PROBE_TIMEOUT_SECONDS) as client:
            response = client.get(url)
        return response.status_code == 200
    except httpx.RequestError:
        return False


def resolve_endpoint() -> tuple[str, str, dict[str, str]]:
    backend, resolved_base = resolve_backend(get_base_url(), get_backend_setting())

    api_key = get_api_key()
    if backend == "openai" and not api_key and resolved_base == DEFAULT_OPENAI_BASE:
        raise LLMError("OPENAI_API_KEY is required when using the OpenAI API")

    headers = {"Content-Type": "application/json"}
    if backend == "openai" and api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    return backend, resolved_base, headers


def build_chat_request(
    backend: str,
    base: str,
    messages: list[dict[str, Any]],
    model: str,
    temperature: float,
    top_p: float | None,
    max_tokens: int | None,
    stream: bool,
) -> tuple[str, dict[str, Any]]:
    if backend == "openai":
        payload: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
        }
        if top_p is not None:
            payload["top_p"] = top_p
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        if stream:
            payload["stream"] = True
        return f"{base}/chat/completions", payload

    options: dict[str, Any] = {"temperature": temperature}
    if top_p is not None:
        options["top_p"] = top_p
    payload = {
        "model": model,
        "messages": messages,
        "stream": stream,
        "options": options,
    }
    return f"{base}/api/chat", payload


def chat(
    messages: list[dict[str, Any]],
    model: str,
    temperature: float = 0.4,
    top_p: float | None = None,
    max_tokens: int | None = None,
) -> str:
    backend, base, headers = resolve_endpoint()
    url, payload = build_chat_request(
        backend, base, messages, model, temperature, top_p, max_tokens, stream=False
    )

    if debug_enabled():
        debug_log(f"[kothaboli.llm] backend={backend} url={url}")
        debug_log(f"[kothaboli.llm] request={payload}")

    try:
        with httpx.Client(timeout=get_timeout_seconds()) as client:
            response = client.post(url, json=payload, headers=headers)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        raise LLMError(f"LLM request failed (backend={backend}, url={url}): {exc}") from exc
    if debug_enabled():
        debug_log(f"[kothaboli.llm] status={response.status_code}")
        debug_log(f"[kothaboli.llm] response={response.text}")

    try:
        data = response.json()
        if backend == "openai":
            return data["choices"][0]["message"]["content"] or ""
        return data["message"]["content"] or ""
    except (ValueError, KeyError, IndexError, TypeError) as exc:
        raise LLMError(f"Unexpected response format (backend={backend}, url={url})") from exc


def stream_chat(
    messages: list[dict[str, Any]],
    model: str,
    temperature: float = 0.8,
    top_p: float | None = None,
    cancel: threading.Event | None = None,
) -> Iterator[str]:
    """Yield completion fragments in the order the backend sends them.

    Setting ``cancel`` stops the iteration before the next fragment.
    """
    backend, base, headers = resolve_endpoint()
    url, payload = build_chat_request(
        backend, base, messages, model, temperature, top_p, None, stream=True
    )

    if debug_enabled():
        debug_log(f"[kothaboli.llm] stream backend={backend} url={url}")
        debug_log(f"[kothaboli.llm] request={payload}")

    try:
        with httpx.Client(timeout=get_timeout_seconds()) as client:
            with client.stream("POST", url, json=payload, headers=headers) as response:
                response.raise_for_status()
                for line in response.iter_lines():
                    if cancel is not None and cancel.is_set():
                        return
                    fragment, done = parse_stream_line(backend, line)
                    if fragment:
                        yield fragment
                    if done:
                        return
    except httpx.HTTPError as exc:
        raise LLMError(f"LLM stream failed (backend={backend}, url={url}): {exc}") from exc


def parse_stream_line(backend: str, line: str) -> tuple[str, bool]:
    """Return ``(fragment, done)`` for one line of a streamed response."""
    line = line.strip()
    if not line:
        return "", False

    if backend == "openai":
        if not line.startswith("data:"):
            return "", False
        body = line[len("data:"):].strip()
        if body == "[DONE]":
            return "", True
        try:
            event = json.loads(body)
            choices = event.get("choices")
        except (json.JSONDecodeError, AttributeError) as exc:
            raise LLMError(f"Unexpected stream event: {body}") from exc
        # Usage and content-filter events carry no choices.
        if not choices:
            return "", False
        choice = choices[0] if isinstance(choices, list) else None
        if not isinstance(choice, dict):
            raise LLMError(f"Unexpected stream event: {body}")
        content = (choice.get("delta") or {}).get("content") or ""
        return content, choice.get("finish_reason") is not None

    try:
        event = json.loads(line)
    except json.JSONDecodeError as exc:
        raise LLMError(f"Unexpected stream event: {line}") from exc
    content = (event.get("message") or {}).get("content") or ""
    return content, bool(event.get("done"))


def generate_image(prompt: str, aspect_ratio: str = "1:1") -> str | None:
    """Return a base64-encoded PNG, or None when the service sent no image."""
    if aspect_ratio not in IMAGE_SIZES:
        raise ValueError(f"Unsupported aspect ratio {aspect_ratio!r}")
    backend, base, headers = resolve_endpoint()
    if backend != "openai":
        raise LLMError("Image generation requires an OpenAI-compatible backend")

    url = f"{base}/images/generations"
    payload = {
        "model": get_image_model(),
        "prompt": prompt,
        "size": IMAGE_SIZES[aspect_ratio],
        "n": 1,
    }
    if debug_enabled():
        debug_log(f"[kothaboli.llm] image url={url} request={payload}")

    try:
        with httpx.Client(timeout=get_timeout_seconds()) as client:
            response = client.post(url, json=payload, headers=headers)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        raise LLMError(f"Image request failed (url={url}): {exc}") from exc

    try:
        data = response.json()
    except ValueError as exc:
        raise LLMError(f"Unexpected image response (url={url})") from exc
    try:
        return data["data"][0].get("b64_json") or None
    except (KeyError, IndexError, TypeError, AttributeError):
        return None


def synthesize_speech(text: str, voice: str | None = None) -> bytes | None:
    """Return raw PCM audio for ``text``, or None when the body is empty."""
    backend, base, headers = resolve_endpoint()
    if backend != "openai":
        raise LLMError("Speech synthesis requires an OpenAI-compatible backend")

    url = f"{base}/audio/speech"
    payload = {
        "model": get_tts_model(),
        "input": text,
        "voice": voice or get_tts_voice(),
        "response_format": "pcm",
    }
    if debug_enabled():
        debug_log(f"[kothaboli.llm] speech url={url} request={payload}")

    try:
        with httpx.Client(timeout=get_timeout_seconds()) as client:
            response = client.post(url, json=payload, headers=headers)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        raise LLMError(f"Speech request failed (url={url}): {exc}") from exc
    return response.content or None
