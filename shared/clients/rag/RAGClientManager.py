from shared.clients.EngineManager import EngineManager
from shared.clients.rag.RAGClientInterface import RAGClientInterface


class RAGClientManager(EngineManager):
    """Vector index client selected by RAG_ENGINE (default: qdrant)."""

    engine_key = "RAG_ENGINE"
    default_engine = "qdrant"
    package = "shared.clients.rag"
    class_prefix = "RAGClient"

    def get_client(self) -> RAGClientInterface:
        return self.instance
