from abc import abstractmethod

from shared.clients.ClientErrors import ClientError
from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig


class LLMClientInterface(ClientInterface):
    """Answer generation backend.

    Generation settings are shared by every engine: LLM_CHAT_MODEL,
    LLM_TEMPERATURE (default 0.1) and LLM_MAX_TOKENS (default 500).
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        prefix = self.get_client_type().upper()
        self.chat_model = helper_config.get_string_val(f"{prefix}_CHAT_MODEL", default=self._get_default_chat_model())
        self.temperature = float(helper_config.get_number_val(f"{prefix}_TEMPERATURE", default=0.1))
        self.max_tokens = int(helper_config.get_number_val(f"{prefix}_MAX_TOKENS", default=500))

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "llm"

    @abstractmethod
    def _get_default_chat_model(self) -> str:
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_chat(self) -> str:
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_chat_payload(self, messages: list[dict]) -> dict:
        """Wrap role/content messages in the engine's request body."""
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_chat_response(self, response_data: dict) -> str:
        """Reply text of a decoded response; ValueError when there is none."""
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_chat(self, messages: list[dict]) -> str:
        """Run one non-streaming completion.

        Args:
            messages (list[dict]): ``[{"role": ..., "content": ...}, ...]`` in order.

        Returns:
            str: Reply text exactly as generated.

        Raises:
            RateLimitError: The provider throttled the call (HTTP 429).
            ClientResponseError: Any other non-2xx answer.
            ClientError: A 2xx answer without a reply in it.
        """
        response = await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_chat(),
            json=self.get_chat_payload(messages),
            raise_on_error=True,
        )
        try:
            return self.extract_chat_response(response.json())
        except ValueError as e:
            self.logging.error("Unusable chat reply from %s: %s", self.get_engine_name(), e)
            raise ClientError(f"Unusable chat reply from {self.get_engine_name()}: {e}") from e

    async def do_grounded_chat(self, system_prompt: str, user_message: str) -> str:
        return await self.do_chat([
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_message},
        ])
