from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig

# suffix Ollama uses for the embedding width in /api/show, e.g. "bert.embedding_length"
_EMBEDDING_LENGTH_SUFFIX = ".embedding_length"


class EmbedClientOllama(EmbedClientInterface):
    """Local Ollama server (``ollama pull all-minilm``), mostly for development."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._server = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._token = self.get_config_val("API_KEY", default="", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Ollama"

    def _get_default_model(self) -> str:
        return "all-minilm"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        # API_KEY only matters behind an authenticating proxy
        return [EnvConfig(env_key="BASE_URL", val_type="string", default=None), EnvConfig(env_key="API_KEY", val_type="string", default="")]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"Authorization": f"Bearer {self._token}"} if self._token else {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._server

    def _get_endpoint_healthcheck(self) -> str:
        # "Ollama is running"
        return ""

    def get_endpoint_embedding(self) -> str:
        return "/api/embed"

    def get_endpoint_model_details(self) -> str:
        return "/api/show"

    ################ PAYLOAD BUILDER ##################
    def get_embed_payload(self, text: str) -> dict:
        return {"model": self.embed_model, "input": [text]}

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_vector_size_from_model_info(self, model_info: dict) -> int:
        architecture = model_info.get("model_info") or {}
        sizes = [value for key, value in architecture.items() if key.endswith(_EMBEDDING_LENGTH_SUFFIX)]
        if not sizes:
            raise ValueError(f"/api/show for '{self.embed_model}' reports no embedding length.")
        return int(sizes[0])

    def extract_embedding_from_response(self, response_data) -> list[float]:
        """Pick the single vector out of ``{"embeddings": [[...]]}``.

        Raises:
            ValueError: If the body holds no non-empty vector.
        """
        batch = response_data.get("embeddings") if isinstance(response_data, dict) else None
        if not batch or not batch[0]:
            raise ValueError(f"Ollama returned no embedding for model '{self.embed_model}'.")
        return [float(component) for component in batch[0]]

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_fetch_embedding_vector_size(self) -> tuple[int, str]:
        # the model travels in the body, not in the path
        details = await self.do_request(
            method="POST",
            endpoint=self.get_endpoint_model_details(),
            json={"name": self.embed_model},
            raise_on_error=True,
        )
        return self.extract_vector_size_from_model_info(details.json()), self.embed_distance
