from shared.clients.parse.ParseClientInterface import ParseClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class ParseClientLlamaparse(ParseClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://api.cloud.llamaindex.ai/api/parsing", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Llamaparse"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://api.cloud.llamaindex.ai/api/parsing"),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"Authorization": f"Bearer {self._api_key}"}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/supported_extensions"

    def _get_endpoint_upload(self) -> str:
        return "/upload"

    def _get_endpoint_result(self, job_id: str) -> str:
        return f"/job/{job_id}/result/markdown"

    ################ PAYLOAD BUILDER ##################
    def get_upload_form(self) -> dict:
        return {"result_type": "markdown", "language": self.language}

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_job_id(self, response_data: dict) -> str:
        job_id = response_data.get("id")
        if not job_id:
            raise ValueError("LlamaParse upload response does not contain a job id.")
        return str(job_id)

    def extract_markdown(self, response_data: dict) -> str:
        return response_data.get("markdown") or ""
