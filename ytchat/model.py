"""Model service backed by LiteLLM.

Three entry points mirror the ways a chat turn talks to the model:

- ``send``: streamed reply, optionally with Gemini's code-execution tool.
- ``send_with_tools``: function-calling loop where the model picks CSV tools
  and the caller executes them locally.
- ``generate_image``: text-to-image, optionally anchored on an input image.

Every provider failure is re-raised as ``ModelError`` so the session layer
only has one exception type to turn into an error message.
"""

from __future__ import annotations

import base64
import io
import json
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Mapping, Sequence

from .chat.loaders import ImageAttachment
from .chat.messages import ToolCall
from .chat.prompts import system_turns
from .chat.tools import CSV_TOOL_DECLARATIONS
from .metrics import TokenTracker, get_tracker, is_gemini_model, normalize_local_api_base, normalize_model
from .utils.logging import get_logger, log_llm_response, log_prompt

logger = get_logger(__name__)

ToolExecutor = Callable[[str, Mapping[str, Any]], dict[str, Any]]


class ModelError(RuntimeError):
    """A model call failed (network, auth, quota, malformed response)."""


@dataclass
class ToolReply:
    text: str
    charts: list[dict[str, Any]] = field(default_factory=list)
    tool_calls: list[ToolCall] = field(default_factory=list)


@dataclass
class GeneratedImage:
    data: str  # base64
    mime_type: str = "image/png"


def _role(role: str) -> str:
    return "user" if role == "user" else "assistant"


def _image_part(image: ImageAttachment) -> dict[str, Any]:
    return {"type": "image_url", "image_url": {"url": f"data:{image.mime_type};base64,{image.data}"}}


class ModelClient:
    """Thin LiteLLM adapter. One instance per configured model."""

    def __init__(
        self,
        model: str,
        *,
        image_model: str = "",
        api_key: str = "",
        api_base: str = "",
        temperature: float = 0.7,
        timeout: int = 120,
        max_tool_rounds: int = 4,
        system_prompt: str = "",
        tracker: TokenTracker | None = None,
    ) -> None:
        self.api_base = normalize_local_api_base(api_base) if api_base else ""
        self.model = normalize_model(model, self.api_base)
        self.image_model = image_model or self.model
        self.api_key = api_key
        self.temperature = temperature
        self.timeout = timeout
        self.max_tool_rounds = max(1, int(max_tool_rounds))
        self.system_prompt = system_prompt
        self.tracker = tracker or get_tracker()

    @classmethod
    def from_config(cls, cfg: Any, system_prompt: str = "") -> ModelClient:
        return cls(
            cfg.lm,
            image_model=cfg.image_lm,
            api_key=cfg.api_key,
            api_base=cfg.api_base,
            temperature=cfg.lm_temperature,
            timeout=cfg.request_timeout,
            max_tool_rounds=cfg.max_tool_rounds,
            system_prompt=system_prompt,
        )

    # -- helpers -----------------------------------------------------------

    def _call_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {"temperature": self.temperature, "timeout": self.timeout}
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base
        return kwargs

    def _messages(
        self,
        history: Sequence[Mapping[str, str]],
        prompt: str,
        images: Sequence[ImageAttachment] | None = None,
    ) -> list[dict[str, Any]]:
        messages = [
            {"role": _role(turn["role"]), "content": turn.get("content") or ""}
            for turn in [*system_turns(self.system_prompt), *history]
        ]
        if images:
            content: Any = [{"type": "text", "text": prompt}, *(_image_part(img) for img in images)]
        else:
            content = prompt
        messages.append({"role": "user", "content": content})
        return messages

    def _record_usage(self, response: Any) -> None:
        usage = getattr(response, "usage", None)
        if usage is not None:
            self.tracker.add_usage(self.model, usage)

    # -- streaming ---------------------------------------------------------

    def send(
        self,
        history: Sequence[Mapping[str, str]],
        prompt: str,
        images: Sequence[ImageAttachment] | None = None,
        code_execution: bool = False,
    ) -> Iterator[str]:
        """Yield reply text chunks as they arrive."""
        import litellm

        kwargs = self._call_kwargs()
        if code_execution and is_gemini_model(self.model):
            kwargs["tools"] = [{"codeExecution": {}}]
        log_prompt(logger, "send" + (" +code" if code_execution else ""), prompt)

        try:
            stream = litellm.completion(
                model=self.model,
                messages=self._messages(history, prompt, images),
                stream=True,
                stream_options={"include_usage": True},
                **kwargs,
            )
            collected: list[str] = []
            for chunk in stream:
                self._record_usage(chunk)
                choices = getattr(chunk, "choices", None) or []
                if not choices:
                    continue
                delta = getattr(choices[0], "delta", None)
                text = getattr(delta, "content", None) if delta is not None else None
                if text:
                    collected.append(text)
                    yield text
        except ModelError:
            raise
        except Exception as exc:
            raise ModelError(str(exc) or type(exc).__name__) from exc
        log_llm_response(logger, "send", "".join(collected))

    # -- tool calling ------------------------------------------------------

    def send_with_tools(
        self,
        history: Sequence[Mapping[str, str]],
        prompt: str,
        headers: Sequence[str],
        executor: ToolExecutor,
    ) -> ToolReply:
        """Let the model call CSV tools until it answers in text.

        Chart-shaped tool results (``chart_type`` present) are collected for
        display. The loop is bounded by ``max_tool_rounds``; after that the
        model is asked once more without tools.
        """
        import litellm

        if headers and not prompt.startswith("[CSV columns:"):
            message_text = f"[CSV columns: {', '.join(headers)}]\n\n{prompt}"
        else:
            message_text = prompt
        messages = self._messages(history, message_text)
        charts: list[dict[str, Any]] = []
        calls: list[ToolCall] = []
        log_prompt(logger, "tools", message_text)

        try:
            for round_no in range(self.max_tool_rounds):
                response = litellm.completion(
                    model=self.model,
                    messages=messages,
                    tools=CSV_TOOL_DECLARATIONS,
                    **self._call_kwargs(),
                )
                self._record_usage(response)
                reply = response.choices[0].message
                tool_calls = getattr(reply, "tool_calls", None) or []
                if not tool_calls:
                    text = reply.content or ""
                    log_llm_response(logger, "tools", text)
                    return ToolReply(text=text, charts=charts, tool_calls=calls)

                messages.append(
                    {
                        "role": "assistant",
                        "content": reply.content or "",
                        "tool_calls": [
                            {
                                "id": tc.id,
                                "type": "function",
                                "function": {"name": tc.function.name, "arguments": tc.function.arguments or "{}"},
                            }
                            for tc in tool_calls
                        ],
                    }
                )
                for tc in tool_calls:
                    name = tc.function.name
                    try:
                        args = json.loads(tc.function.arguments or "{}")
                    except json.JSONDecodeError:
                        args = {}
                    result = executor(name, args)
                    logger.debug("Tool round %d: %s(%s) -> %s", round_no + 1, name, args, sorted(result))
                    calls.append(ToolCall(name=name, args=args, result=result))
                    if isinstance(result, dict) and result.get("chart_type"):
                        charts.append(result)
                    messages.append(
                        {
                            "role": "tool",
                            "tool_call_id": tc.id,
                            "name": name,
                            "content": json.dumps(result, default=str),
                        }
                    )

            logger.info("Tool round limit (%d) reached; requesting final answer", self.max_tool_rounds)
            response = litellm.completion(model=self.model, messages=messages, **self._call_kwargs())
            self._record_usage(response)
            text = response.choices[0].message.content or ""
        except Exception as exc:
            raise ModelError(str(exc) or type(exc).__name__) from exc

        log_llm_response(logger, "tools", text)
        return ToolReply(text=text, charts=charts, tool_calls=calls)

    # -- images ------------------------------------------------------------

    def generate_image(self, prompt: str, anchor: ImageAttachment | None = None) -> GeneratedImage:
        """Generate one image; with *anchor*, edit that image instead."""
        import litellm

        kwargs: dict[str, Any] = {"timeout": self.timeout}
        if self.api_key:
            kwargs["api_key"] = self.api_key
        log_prompt(logger, "image" + (" +anchor" if anchor else ""), prompt)

        try:
            if anchor is not None:
                buf = io.BytesIO(base64.b64decode(anchor.data))
                buf.name = anchor.name
                response = litellm.image_edit(model=self.image_model, image=buf, prompt=prompt, **kwargs)
            else:
                response = litellm.image_generation(model=self.image_model, prompt=prompt, n=1, **kwargs)
        except Exception as exc:
            raise ModelError(str(exc) or type(exc).__name__) from exc

        self._record_usage(response)
        items = getattr(response, "data", None) or []
        encoded = getattr(items[0], "b64_json", None) if items else None
        if not encoded:
            raise ModelError("Image generation returned no image data.")
        return GeneratedImage(data=encoded, mime_type="image/png")
