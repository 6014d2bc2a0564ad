from shared.clients.EngineManager import EngineManager
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface


class EmbedClientManager(EngineManager):
    """Embedding client selected by EMBED_ENGINE (default: huggingface)."""

    engine_key = "EMBED_ENGINE"
    default_engine = "huggingface"
    package = "shared.clients.embed"
    class_prefix = "EmbedClient"

    def get_client(self) -> EmbedClientInterface:
        """Return the client, not yet booted; EmbedModelHandle boots it on first use."""
        return self.instance
