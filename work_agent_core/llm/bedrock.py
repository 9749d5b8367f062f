"""
Claude on Amazon Bedrock, through the Anthropic SDK.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from anthropic import AsyncAnthropicBedrock

from work_agent_core.config_schema import Guardrails
from work_agent_core.persistence.base import Message

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 4096


@dataclass
class ModelSettings:
    """Everything needed to build a model client for one agent."""

    model_id: str
    region: str
    credentials: dict = field(default_factory=dict)  # aws_profile, aws_access_key, ...
    guardrails: Optional[Guardrails] = None


@dataclass
class LLMResponse:
    message: Message
    usage: dict = field(default_factory=dict)
    model: str = ""
    stop_reason: str = ""
    raw_response: Any = None


class BedrockModelClient:
    """
    Thin async client for one Bedrock model.

    Guardrails from the agent spec are applied as request defaults; keyword
    arguments passed to generate() win over them.
    """

    def __init__(self, settings: ModelSettings, **kwargs):
        self.settings = settings
        self._client = AsyncAnthropicBedrock(
            aws_region=settings.region,
            **settings.credentials,
            **kwargs,
        )

    @property
    def model_id(self) -> str:
        return self.settings.model_id

    def _guardrail_kwargs(self) -> dict:
        guardrails = self.settings.guardrails
        request_kwargs: dict[str, Any] = {
            "max_tokens": DEFAULT_MAX_TOKENS,
        }
        if guardrails is None:
            return request_kwargs
        if guardrails.max_tokens is not None:
            request_kwargs["max_tokens"] = guardrails.max_tokens
        if guardrails.temperature is not None:
            request_kwargs["temperature"] = guardrails.temperature
        if guardrails.top_p is not None:
            request_kwargs["top_p"] = guardrails.top_p
        if guardrails.stop_sequences:
            request_kwargs["stop_sequences"] = list(guardrails.stop_sequences)
        return request_kwargs

    async def generate(
        self,
        messages: list[Message],
        system: Optional[str] = None,
        tools: Optional[list] = None,
        **kwargs,
    ) -> LLMResponse:
        """
        Generate a completion.

        Args:
            messages: Stored messages; a "system" role message is used as the
                system prompt when `system` is not given
            system: System prompt
            tools: Tool objects or tool definitions in Anthropic format
            **kwargs: Additional parameters passed to the API

        Returns:
            LLMResponse with the assistant message
        """
        chat_messages = []
        for msg in messages:
            if msg.get("role") == "system":
                system = system or msg.get("content", "")
            else:
                chat_messages.append(self._convert_message(msg))

        request_kwargs = {
            "model": self.model_id,
            "messages": self._merge_consecutive_messages(chat_messages),
            **self._guardrail_kwargs(),
        }
        if system:
            request_kwargs["system"] = system
        if tools:
            request_kwargs["tools"] = [self._convert_tool(t) for t in tools]
        request_kwargs.update(kwargs)

        logger.debug(f"Bedrock request to {self.model_id} with {len(chat_messages)} messages")
        response = await self._client.messages.create(**request_kwargs)

        return LLMResponse(
            message=self._convert_response(response),
            usage={
                "prompt_tokens": response.usage.input_tokens,
                "completion_tokens": response.usage.output_tokens,
                "total_tokens": response.usage.input_tokens + response.usage.output_tokens,
            },
            model=response.model,
            stop_reason=response.stop_reason or "",
            raw_response=response,
        )

    def _convert_tool(self, tool: Any) -> dict:
        if hasattr(tool, "to_schema"):
            return tool.to_schema()
        if tool.get("type") == "function":
            func = tool["function"]
            return {
                "name": func["name"],
                "description": func.get("description", ""),
                "input_schema": func.get("parameters", {}),
            }
        return tool

    def _convert_message(self, msg: Message) -> dict:
        """Convert a stored message (tool calls included) to Anthropic format."""
        role = msg.get("role", "user")

        if role == "tool":
            return {
                "role": "user",
                "content": [
                    {
                        "type": "tool_result",
                        "tool_use_id": msg.get("tool_call_id", ""),
                        "content": msg.get("content", ""),
                    }
                ],
            }

        if role == "assistant" and msg.get("tool_calls"):
            content_blocks = []
            if msg.get("content"):
                content_blocks.append({"type": "text", "text": msg["content"]})
            for tool_call in msg["tool_calls"]:
                func = tool_call.get("function", tool_call)
                args = func.get("arguments", {})
                if isinstance(args, str):
                    try:
                        args = json.loads(args)
                    except json.JSONDecodeError:
                        args = {}
                content_blocks.append({
                    "type": "tool_use",
                    "id": tool_call.get("id", ""),
                    "name": func.get("name", ""),
                    "input": args,
                })
            return {"role": "assistant", "content": content_blocks}

        return {"role": role, "content": msg.get("content", "")}

    def _merge_consecutive_messages(self, messages: list[dict]) -> list[dict]:
        """Merge consecutive messages with the same role; Anthropic requires alternation."""
        merged: list[dict] = []
        for msg in messages:
            if not merged or merged[-1]["role"] != msg["role"]:
                merged.append(msg)
                continue

            last_content = merged[-1]["content"]
            new_content = msg["content"]
            if isinstance(last_content, str):
                last_content = [{"type": "text", "text": last_content}] if last_content else []
            if isinstance(new_content, str):
                new_content = [{"type": "text", "text": new_content}] if new_content else []
            merged[-1] = {"role": msg["role"], "content": last_content + new_content}

        return merged

    def _convert_response(self, response) -> Message:
        content = ""
        tool_calls = []

        for block in response.content:
            if block.type == "text":
                content += block.text
            elif block.type == "tool_use":
                arguments = json.dumps(block.input) if isinstance(block.input, dict) else str(block.input)
                tool_calls.append({
                    "id": block.id,
                    "type": "function",
                    "function": {
                        "name": block.name,
                        "arguments": arguments,
                    },
                })

        result: Message = {"role": "assistant", "content": content}
        if tool_calls:
            result["tool_calls"] = tool_calls
        return result


def create_bedrock_client(settings: ModelSettings) -> BedrockModelClient:
    """Default model client factory used by the lifecycle manager."""
    return BedrockModelClient(settings)
