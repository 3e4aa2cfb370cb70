from .embedding_agent import EmbeddingAgent
from .model_agent import (
    ChatReply,
    Conversation,
    ModelAgent,
    ToolRegistry,
    bind_tool_result,
    decode_reply,
)

__all__ = [
    "ChatReply",
    "Conversation",
    "EmbeddingAgent",
    "ModelAgent",
    "ToolRegistry",
    "bind_tool_result",
    "decode_reply",
]
