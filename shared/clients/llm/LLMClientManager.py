from shared.clients.EngineManager import EngineManager
from shared.clients.llm.LLMClientInterface import LLMClientInterface


class LLMClientManager(EngineManager):
    """Answer generation client selected by LLM_ENGINE (default: openai, i.e. any
    OpenAI-compatible chat completions API such as Groq)."""

    engine_key = "LLM_ENGINE"
    default_engine = "openai"
    package = "shared.clients.llm"
    class_prefix = "LLMClient"

    def get_client(self) -> LLMClientInterface:
        return self.instance
