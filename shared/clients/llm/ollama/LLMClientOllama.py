from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class LLMClientOllama(LLMClientInterface):
    """Self-hosted generation through Ollama's native /api/chat."""

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

    def _get_default_chat_model(self) -> str:
        return "llama3.1"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [EnvConfig(env_key="BASE_URL", val_type="string", default=None), EnvConfig(env_key="API_KEY", val_type="string", default="")]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"Authorization": f"Bearer {self._token}"} if self._token else {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._server

    def _get_endpoint_healthcheck(self) -> str:
        return ""

    def _get_endpoint_chat(self) -> str:
        return "/api/chat"

    ################ PAYLOAD BUILDER ##################
    def get_chat_payload(self, messages: list[dict]) -> dict:
        # num_predict is Ollama's name for the completion token cap
        options = {"temperature": self.temperature, "num_predict": self.max_tokens}
        return {"model": self.chat_model, "messages": messages, "stream": False, "options": options}

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_chat_response(self, response_data: dict) -> str:
        reply = (response_data.get("message") or {}).get("content")
        if reply is None:
            raise ValueError(f"no message.content in Ollama reply (got keys {sorted(response_data)})")
        return reply
