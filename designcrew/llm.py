"""LLM adapter via litellm."""

import asyncio
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import litellm
litellm.suppress_debug_info = True

_FENCE_RE = re.compile(r"```(?:\w*)\s*\n(.*?)```", re.DOTALL)


@dataclass
class LLMResponse:
    content: Optional[str] = None
    usage: Optional[Dict] = None


class LLMAdapter:
    """Thin wrapper over ``litellm.completion``. Passes api_key/api_base
    directly instead of exporting provider env vars."""

    def __init__(self, model: str, temperature: float = 0.0,
                 max_tokens: int = 4096, api_base: Optional[str] = None,
                 api_key: Optional[str] = None):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.api_base = api_base
        self.api_key = api_key

    def chat(self, messages: List[Dict[str, Any]]) -> LLMResponse:
        kwargs: Dict[str, Any] = {
            "model": self.model, "messages": messages,
            "temperature": self.temperature, "max_tokens": self.max_tokens,
        }
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if self.api_key:
            kwargs["api_key"] = self.api_key

        try:
            response = litellm.completion(**kwargs)
            content = response.choices[0].message.content
            usage = None
            if getattr(response, "usage", None):
                usage = {"prompt_tokens": response.usage.prompt_tokens,
                         "completion_tokens": response.usage.completion_tokens,
                         "total_tokens": response.usage.total_tokens}
        except litellm.exceptions.AuthenticationError as e:
            raise ConnectionError(f"Auth failed. Check API key.\n{e}")
        except litellm.exceptions.APIConnectionError as e:
            raise ConnectionError(f"Cannot connect: model={self.model}, base={self.api_base or 'default'}\n{e}")
        except Exception as e:
            raise ConnectionError(f"LLM error: {type(e).__name__}: {e}")

        return LLMResponse(content=content, usage=usage)

    async def achat(self, messages: List[Dict[str, Any]]) -> LLMResponse:
        """``chat`` on a worker thread so the event loop keeps dispatching."""
        return await asyncio.to_thread(self.chat, messages)


def extract_json(raw: str, opener: str = "[") -> Any:
    """Pull a JSON document out of a model reply.

    Code fences are stripped; otherwise the outermost ``opener``/closer
    span is used. Raises ``ValueError`` when nothing parses.
    """
    closer = "]" if opener == "[" else "}"
    text = (raw or "").strip()

    m = _FENCE_RE.search(text)
    if m:
        text = m.group(1).strip()

    if not text.startswith(opener):
        start = text.find(opener)
        end = text.rfind(closer)
        if start >= 0 and end > start:
            text = text[start:end + 1]

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Reply is not valid JSON: {e.msg} near {text[:80]!r}") from None
