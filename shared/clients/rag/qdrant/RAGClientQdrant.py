from typing import Any

import httpx
from shared.helper.HelperConfig import HelperConfig
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.models.config import EnvConfig


class RAGClientQdrant(RAGClientInterface):
    """Qdrant over its REST API (port 6333); one collection holds every tenant."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._server = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._token = self.get_config_val("API_KEY", default="", val_type="string")
        self._collection = self.get_config_val("COLLECTION", default="condo_knowledge_base", val_type="string")
        # segments below this many vectors are searched without an HNSW index
        self._hnsw_from = int(self.get_config_val("INDEXING_THRESHOLD", default=10000, val_type="number"))

    def _collection_path(self, suffix: str = "") -> str:
        return f"/collections/{self._collection}{suffix}"

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Qdrant"

    def get_collection_name(self) -> str:
        return self._collection

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="COLLECTION", val_type="string", default="condo_knowledge_base"),
            EnvConfig(env_key="INDEXING_THRESHOLD", val_type="number", default=10000),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"api-key": self._token} if self._token else {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._server

    def _get_endpoint_healthcheck(self) -> str:
        return "/healthz"

    def _get_endpoint_collection(self) -> str:
        return self._collection_path()

    def _get_endpoint_check_collection_existence(self) -> str:
        return self._collection_path("/exists")

    def _get_endpoint_points(self) -> str:
        return self._collection_path("/points")

    def _get_endpoint_search(self) -> str:
        return self._collection_path("/points/search")

    def _get_endpoint_delete_points(self) -> str:
        return self._collection_path("/points/delete")

    def _get_endpoint_scroll(self) -> str:
        return self._collection_path("/points/scroll")

    def _get_endpoint_count(self) -> str:
        return self._collection_path("/points/count")

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def get_match_condition(self, key: str, value: Any) -> dict:
        return {"key": key, "match": {"value": value}}

    def get_create_collection_payload(self, vector_size: int, distance: str) -> dict:
        return {
            "vectors": {"size": vector_size, "distance": distance},
            "optimizers_config": {"indexing_threshold": self._hnsw_from},
        }

    def get_search_payload(self, vector: list[float], conditions: list[dict], limit: int, score_threshold: float | None) -> dict:
        payload = {
            "vector": vector,
            "limit": limit,
            "with_payload": True,
            "filter": {"must": conditions},
        }
        if score_threshold is not None:
            payload["score_threshold"] = score_threshold
        return payload

    def get_scroll_payload(self, conditions: list[dict], with_payload: bool | list | dict, with_vector: bool | list, limit: int | None = None, offset: str | int | None = None) -> dict:
        payload = {
            "limit": limit,
            "with_payload": with_payload,
            "with_vector": with_vector,
        }
        if conditions:
            payload["filter"] = {"must": conditions}
        if offset is not None:
            payload["offset"] = offset
        return payload

    def get_count_payload(self, conditions: list[dict]) -> dict:
        payload: dict = {"exact": True}
        if conditions:
            payload["filter"] = {"must": conditions}
        return payload

    def get_delete_payload(self, conditions: list[dict], keep_ids: list[str] | None = None) -> dict:
        delete_filter: dict = {"must": conditions}
        if keep_ids:
            delete_filter["must_not"] = [{"has_id": keep_ids}]
        return {"filter": delete_filter}

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_search_hits(self, raw_response: dict) -> list[dict]:
        return raw_response.get("result") or []

    def extract_scroll_content(self, raw_response: dict) -> dict:
        result = raw_response.get("result", {})
        return {
            "result": result.get("points", []),
            "status": raw_response.get("status", "ok"),
            "time": raw_response.get("time", 0),
        }

    def extract_next_page_offset(self, raw_response: dict) -> str | int | None:
        return raw_response.get("result", {}).get("next_page_offset")

    def extract_vector_size(self, collection_info: dict) -> int:
        vectors = collection_info.get("result", {}).get("config", {}).get("params", {}).get("vectors", {})
        size = vectors.get("size")
        if size is None:
            raise ValueError(f"Collection '{self._collection}' does not declare a single unnamed vector size.")
        return int(size)

    def is_already_exists_response(self, response: httpx.Response) -> bool:
        # Qdrant answers 409 on newer versions and 400 "already exists" on older ones
        return response.status_code == 409 or (response.status_code == 400 and "already exists" in response.text)
