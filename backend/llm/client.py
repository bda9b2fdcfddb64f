from __future__ import annotations

import logging

import requests

from config import settings

log = logging.getLogger(__name__)


class LLMClientError(RuntimeError):
    pass


class OllamaClient:
    def __init__(
        self,
        *,
        base_url: str | None = None,
        model: str | None = None,
        timeout: int | None = None,
    ) -> None:
        self.base_url = (base_url or settings.ollama_url).rstrip("/")
        self.model = model or settings.ollama_model
        if timeout is None:
            timeout = settings.ollama_timeout
        self.timeout = timeout

    def generate_npc_reply(self, prompt: str, temperature: float = 0.8) -> str:
        content = self._chat(
            messages=_npc_reply_messages(prompt),
            temperature=temperature,
        )
        reply = content.strip()
        if not reply:
            raise LLMClientError("Empty reply from Ollama.")
        return reply

    def _chat(
        self,
        *,
        messages: list[dict[str, str]],
        temperature: float,
    ) -> str:
        url = f"{self.base_url}/api/chat"
        payload = {
            "model": self.model,
            "messages": messages,
            "stream": False,
            "options": {"temperature": temperature},
        }
        try:
            response = requests.post(url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            log.warning("ollama_request_failed model=%s error=%s", self.model, exc)
            raise LLMClientError("Ollama request failed.") from exc
        message = data.get("message", {}) if isinstance(data, dict) else {}
        content = message.get("content")
        if not isinstance(content, str):
            raise LLMClientError("Invalid response from Ollama.")
        return content


def _npc_reply_messages(prompt: str) -> list[dict[str, str]]:
    system = (
        "You voice a single game character. "
        "Stay in character, reply in plain prose, no markdown, no stage notes."
    )
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": prompt},
    ]
