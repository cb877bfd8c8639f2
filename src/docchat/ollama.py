"""Клиент локального сервера Ollama."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from .errors import ModelError, ModelUnavailable

logger = logging.getLogger(__name__)

DEFAULT_HOST = "http://localhost:11434"
TRANSIENT_STATUSES = {502, 503, 504}


class OllamaClient:
    """Обёртка над REST API Ollama: список моделей и генерация ответа.

    Таймаут задаётся на каждый запрос. Повторы выполняются только при
    недоступности сервера: ошибках соединения, таймаутах и статусах
    502/503/504. Остальные ошибки поднимаются сразу как ``ModelError``.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_HOST,
        *,
        timeout: float = 120.0,
        max_attempts: int = 3,
        backoff: float = 1.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self.backoff = backoff

    async def _request(
        self, method: str, path: str, payload: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        url = self.base_url + path
        delay = self.backoff

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for attempt in range(1, self.max_attempts + 1):
                try:
                    response = await client.request(method, url, json=payload)
                    response.raise_for_status()
                    break
                except httpx.HTTPStatusError as exc:
                    status = exc.response.status_code
                    if status not in TRANSIENT_STATUSES:
                        logger.error("Ollama request %s failed: %s", path, status)
                        raise ModelError(
                            f"Ollama request failed: {status} {exc.response.text}"
                        ) from exc
                    if attempt < self.max_attempts:
                        logger.warning(
                            "Ollama transient error %s, retry %s/%s",
                            status,
                            attempt,
                            self.max_attempts,
                        )
                        await asyncio.sleep(delay)
                        delay *= 2
                        continue
                    logger.error(
                        "Ollama request failed after %s attempts: %s",
                        self.max_attempts,
                        status,
                    )
                    raise ModelUnavailable(
                        f"Ollama request failed after {self.max_attempts} attempts: {status}"
                    ) from exc
                except httpx.TransportError as exc:
                    if attempt < self.max_attempts:
                        logger.warning(
                            "Ollama is unreachable: %s, retry %s/%s",
                            exc,
                            attempt,
                            self.max_attempts,
                        )
                        await asyncio.sleep(delay)
                        delay *= 2
                        continue
                    logger.error("Ollama is unreachable: %s", exc)
                    raise ModelUnavailable(
                        f"Ollama is unreachable after {self.max_attempts} attempts"
                    ) from exc

        try:
            data = response.json()
        except ValueError as exc:
            logger.error("Ollama returned non-JSON response: %s", response.text)
            raise ModelError("Ollama returned non-JSON response") from exc
        if not isinstance(data, dict):
            raise ModelError("Unexpected Ollama response")
        return data

    async def list(self) -> List[str]:
        """Вернуть имена установленных моделей."""
        data = await self._request("GET", "/api/tags")
        try:
            return [item["name"] for item in data.get("models", [])]
        except (KeyError, TypeError) as exc:
            raise ModelError("Unexpected Ollama model list") from exc

    async def generate(self, prompt: str, model: str) -> str:
        """Отправить промпт модели и вернуть текст ответа."""
        payload = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "stream": False,
        }
        data = await self._request("POST", "/api/chat", payload)
        if "error" in data:
            raise ModelError(str(data["error"]))
        try:
            return data["message"]["content"]
        except (KeyError, TypeError) as exc:
            raise ModelError("Ollama response has no message content") from exc


__all__ = ["OllamaClient", "DEFAULT_HOST"]
