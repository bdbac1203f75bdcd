"""Answer generation through the Ollama HTTP API."""

from __future__ import annotations

import json
import time
from typing import Callable

import httpx

from ghost_librarian.config import Settings
from ghost_librarian.errors import GenerationError
from ghost_librarian.telemetry import configure_logging, log_event

SYSTEM_PROMPT = """You are Ghost Librarian, a precise research assistant. Answer questions using ONLY the provided context. Follow these rules strictly:

1. Base your answer exclusively on the provided context
2. If the context doesn't contain enough information, say so clearly
3. Quote specific passages when relevant
4. Be concise and factual, avoid speculation
5. If the context contains conflicting information, acknowledge it"""

TEMPERATURE = 0.1
MAX_PREDICT_TOKENS = 1024


def build_prompt(query: str, context: str) -> str:
    return (
        f"CONTEXT:\n{context}\n\n---\nQUESTION: {query}\n\n"
        "Provide a precise answer based only on the context above."
    )


def _client(settings: Settings, client: httpx.Client | None) -> httpx.Client:
    if client is not None:
        return client
    return httpx.Client(base_url=settings.ollama_url, timeout=settings.ollama_timeout)


def health_check(settings: Settings, *, client: httpx.Client | None = None) -> bool:
    http = _client(settings, client)
    try:
        response = http.get("/api/tags")
        return response.is_success
    except httpx.HTTPError:
        return False
    finally:
        if client is None:
            http.close()


def list_models(settings: Settings, *, client: httpx.Client | None = None) -> list[str]:
    http = _client(settings, client)
    try:
        response = http.get("/api/tags")
        response.raise_for_status()
        data = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        raise GenerationError(f"Failed to list Ollama models: {exc}") from exc
    finally:
        if client is None:
            http.close()
    models = (data.get("models") or []) if isinstance(data, dict) else None
    if not isinstance(models, list):
        raise GenerationError(f"Unexpected model list from Ollama: {data!r}")
    return [
        str(model["name"])
        for model in models
        if isinstance(model, dict) and model.get("name")
    ]


def ask_with_context(
    query: str,
    context: str,
    settings: Settings,
    *,
    model: str | None = None,
    on_token: Callable[[str], None] | None = None,
    client: httpx.Client | None = None,
) -> str:
    """Stream an answer for ``query`` grounded in ``context``; return the full text.

    ``on_token`` receives each streamed fragment as it arrives.
    """
    start = time.perf_counter()
    logger = configure_logging()
    model_name = model or settings.ollama_model
    payload = {
        "model": model_name,
        "prompt": build_prompt(query, context),
        "system": SYSTEM_PROMPT,
        "stream": True,
        "options": {"temperature": TEMPERATURE, "num_predict": MAX_PREDICT_TOKENS},
    }
    parts: list[str] = []
    http = _client(settings, client)
    try:
        with http.stream("POST", "/api/generate", json=payload) as response:
            response.raise_for_status()
            for line in response.iter_lines():
                if not line.strip():
                    continue
                message = json.loads(line)
                if not isinstance(message, dict):
                    raise GenerationError(f"Malformed response from Ollama: {line!r}")
                if message.get("error"):
                    raise GenerationError(f"Ollama returned an error: {message['error']}")
                fragment = message.get("response") or ""
                if fragment:
                    parts.append(fragment)
                    if on_token is not None:
                        on_token(fragment)
                if message.get("done"):
                    break
    except httpx.HTTPError as exc:
        raise GenerationError(
            f"Failed to connect to Ollama at {settings.ollama_url}. Is it running? (ollama serve): {exc}"
        ) from exc
    except json.JSONDecodeError as exc:
        raise GenerationError(f"Malformed response from Ollama: {exc}") from exc
    finally:
        if client is None:
            http.close()

    answer = "".join(parts)
    log_event(
        logger,
        "generation_complete",
        model=model_name,
        answer_chars=len(answer),
        elapsed_ms=(time.perf_counter() - start) * 1000,
    )
    return answer
