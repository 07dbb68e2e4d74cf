"""SimpleMath: turn descriptions of mathematical concepts into p5.js animations.

Key components:
- RoundOrchestrator: three-round prompt chain (analysis, feasibility, code)
- ConversationStore: persisted, append-only conversation transcripts
- OpenAICompatibleClient: chat completion client
- AnimationService: renders generated code into playable pages
"""

from .animation import AnimationService, get_example_code
from .config import OrchestratorConfig, Settings, SettingsStore
from .conversation import ConversationStore, FileKeyValueStorage, MemoryKeyValueStorage
from .llm_client import LLMClient
from .llm_client_openai import OpenAICompatibleClient
from .models import Conversation, Message, MessageRole, ProcessingStatus
from .pipeline import CodeGenerator, RoundOrchestrator, contains_p5_code, extract_code

__version__ = "0.1.0"

__all__ = [
    "AnimationService",
    "get_example_code",
    "OrchestratorConfig",
    "Settings",
    "SettingsStore",
    "ConversationStore",
    "FileKeyValueStorage",
    "MemoryKeyValueStorage",
    "LLMClient",
    "OpenAICompatibleClient",
    "Conversation",
    "Message",
    "MessageRole",
    "ProcessingStatus",
    "CodeGenerator",
    "RoundOrchestrator",
    "contains_p5_code",
    "extract_code",
]
