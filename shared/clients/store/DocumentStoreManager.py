from shared.clients.EngineManager import EngineManager
from shared.clients.store.DocumentStoreInterface import DocumentStoreInterface


class DocumentStoreManager(EngineManager):
    """Document record store selected by STORE_ENGINE (default: memory)."""

    engine_key = "STORE_ENGINE"
    default_engine = "memory"
    package = "shared.clients.store"
    class_prefix = "DocumentStore"

    def get_store(self) -> DocumentStoreInterface:
        return self.instance
