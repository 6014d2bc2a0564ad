from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class EmbedClientHuggingface(EmbedClientInterface):
    """Hugging Face inference feature-extraction pipeline.

    Sentence-transformer models answer with one pooled vector; raw encoder
    models answer with one vector per token, which is mean-pooled here.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://router.huggingface.co/hf-inference", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Huggingface"

    def _get_default_model(self) -> str:
        return "sentence-transformers/all-MiniLM-L6-v2"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://router.huggingface.co/hf-inference"),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"Authorization": f"Bearer {self._api_key}"}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return f"/models/{self.embed_model}"

    def get_endpoint_embedding(self) -> str:
        return f"/models/{self.embed_model}/pipeline/feature-extraction"

    ################ PAYLOAD BUILDER ##################
    def get_embed_payload(self, text: str) -> dict:
        return {"inputs": text, "options": {"wait_for_model": True, "use_cache": True}}

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_embedding_from_response(self, response_data) -> list[float]:
        """Extract a sentence vector from a feature-extraction response.

        Accepted shapes:
        - ``[f, f, ...]``            sentence vector
        - ``[[f, ...], [f, ...]]``   token vectors (mean-pooled)
        - ``[[[f, ...], ...]]``      batch of one, token vectors

        Raises:
            ValueError: For any other shape or an empty/ragged result.
        """
        if isinstance(response_data, dict):
            raise ValueError(f"Unexpected object response: {str(response_data.get('error', response_data))[:200]}")
        if not isinstance(response_data, list) or not response_data:
            raise ValueError("Empty feature-extraction response.")

        # unwrap a batch of one
        if isinstance(response_data[0], list) and response_data[0] and isinstance(response_data[0][0], list):
            if len(response_data) != 1:
                raise ValueError("Expected a single input in the feature-extraction response.")
            response_data = response_data[0]

        if isinstance(response_data[0], list):
            return self._mean_pool(response_data)
        return [float(v) for v in response_data]

    @staticmethod
    def _mean_pool(token_vectors: list[list[float]]) -> list[float]:
        dims = len(token_vectors[0])
        if dims == 0 or any(len(tok) != dims for tok in token_vectors):
            raise ValueError("Token embeddings are empty or of unequal length.")
        count = len(token_vectors)
        return [sum(float(tok[i]) for tok in token_vectors) / count for i in range(dims)]
