"""Thin wrapper around an OpenAI-compatible chat-completion endpoint.

The chat assistant and the insight generator only need two things from a
model: its text and, optionally, one function-call intent.  :class:`LLMClient`
returns exactly that as a :class:`Completion`, which keeps the callers (and
their tests) independent of the SDK's response objects.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from openai import OpenAI

from focusflow.core.config import resolve_api_key

logger = logging.getLogger(__name__)


@dataclass
class FunctionCall:
    name: str
    arguments: str  # raw JSON text as produced by the model
    call_id: Optional[str] = None


@dataclass
class Completion:
    content: str
    function_call: Optional[FunctionCall] = None

    def as_assistant_message(self) -> dict[str, Any]:
        """The assistant turn to echo back before a function result."""
        message: dict[str, Any] = {"role": "assistant", "content": self.content or None}
        call = self.function_call
        if call is not None and call.call_id:
            message["tool_calls"] = [
                {
                    "id": call.call_id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": call.arguments},
                }
            ]
        elif call is not None:
            message["function_call"] = {"name": call.name, "arguments": call.arguments}
        return message

    def result_message(self, content: str) -> dict[str, Any]:
        """Wrap a function result so the model can read it on the next round."""
        call = self.function_call
        if call is not None and call.call_id:
            return {"role": "tool", "tool_call_id": call.call_id, "content": content}
        return {"role": "function", "name": call.name if call else "", "content": content}


class LLMClient:
    def __init__(
        self,
        api_key: Optional[str],
        base_url: Optional[str] = None,
        model: str = "llama-3.3-70b-versatile",
        temperature: float = 0.3,
        max_tokens: int = 1024,
        timeout: Optional[float] = None,
        client: Any = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_config(cls, section: dict[str, Any]) -> "LLMClient":
        return cls(
            api_key=resolve_api_key(section),
            base_url=section.get("base_url"),
            model=section.get("model", "llama-3.3-70b-versatile"),
            temperature=section.get("temperature", 0.3),
            max_tokens=section.get("max_tokens", 1024),
            timeout=section.get("timeout_seconds"),
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key) or self._client is not None

    def _get_client(self) -> Any:
        if self._client is None:
            kwargs: dict[str, Any] = {"api_key": self.api_key, "base_url": self.base_url}
            if self.timeout is not None:
                kwargs["timeout"] = self.timeout
            self._client = OpenAI(**kwargs)
        return self._client

    def complete(
        self, messages: list[dict[str, Any]], functions: Optional[list[dict[str, Any]]] = None
    ) -> Completion:
        """Run one chat completion.  SDK errors propagate to the caller."""
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if functions:
            kwargs["tools"] = [{"type": "function", "function": f} for f in functions]
            kwargs["tool_choice"] = "auto"

        response = self._get_client().chat.completions.create(**kwargs)
        if not response.choices:
            return Completion(content="")
        message = response.choices[0].message
        return Completion(content=message.content or "", function_call=_extract_call(message))


def _extract_call(message: Any) -> Optional[FunctionCall]:
    tool_calls = getattr(message, "tool_calls", None) or []
    for call in tool_calls:
        fn = getattr(call, "function", None)
        if fn is not None:
            if len(tool_calls) > 1:
                logger.debug("Model proposed %d tool calls; running the first", len(tool_calls))
            return FunctionCall(name=fn.name, arguments=fn.arguments or "", call_id=call.id)
    legacy = getattr(message, "function_call", None)
    if legacy is not None:
        return FunctionCall(name=legacy.name, arguments=legacy.arguments or "")
    return None
