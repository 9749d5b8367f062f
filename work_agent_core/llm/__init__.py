"""
Model clients.

Provides:
- BedrockModelClient: Claude on Amazon Bedrock
- ModelSettings: model id, region, credentials and guardrails for one agent
- create_bedrock_client: default factory used by AgentLifecycleManager
"""

from work_agent_core.llm.bedrock import (
    DEFAULT_MAX_TOKENS,
    BedrockModelClient,
    LLMResponse,
    ModelSettings,
    create_bedrock_client,
)

__all__ = [
    "BedrockModelClient",
    "LLMResponse",
    "ModelSettings",
    "DEFAULT_MAX_TOKENS",
    "create_bedrock_client",
]
