from datetime import datetime

from shared.clients.ClientInterface import ClientInterface
from shared.clients.store.DocumentStoreInterface import DocumentStoreInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.answer import RequestLogEntry
from shared.models.document import Document


class DocumentStoreSupabase(ClientInterface, DocumentStoreInterface):
    """Document records in a Supabase (PostgREST) table whose columns mirror Document.

    Asked questions go to a second table (``REQUESTS_TABLE``, default
    ``ai_requests``) with the columns of RequestLogEntry.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")
        self._table = self.get_config_val("TABLE", default="documents", val_type="string")
        self._requests_table = self.get_config_val("REQUESTS_TABLE", default="ai_requests", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "store"

    def _get_engine_name(self) -> str:
        return "Supabase"

    def get_store_engine(self) -> str:
        return self.get_engine_name()

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
            EnvConfig(env_key="TABLE", val_type="string", default="documents"),
            EnvConfig(env_key="REQUESTS_TABLE", val_type="string", default="ai_requests"),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"apikey": self._api_key, "Authorization": f"Bearer {self._api_key}"}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return f"/rest/v1/{self._table}?select=id&limit=1"

    def _get_endpoint_table(self) -> str:
        return f"/rest/v1/{self._table}"

    def _get_endpoint_requests(self) -> str:
        return f"/rest/v1/{self._requests_table}"

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_get(self, tenant_id: str, doc_id: str) -> Document | None:
        resp = await self.do_request(
            method="GET",
            endpoint=self._get_endpoint_table(),
            params={"id": f"eq.{doc_id}", "tenant_id": f"eq.{tenant_id}", "select": "*"},
            raise_on_error=True,
        )
        rows = resp.json()
        return Document.model_validate(rows[0]) if rows else None

    async def do_save(self, document: Document) -> None:
        await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_table(),
            json=document.model_dump(mode="json"),
            additional_headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
            raise_on_error=True,
        )

    async def do_list(self, tenant_id: str | None = None) -> list[Document]:
        params = {"select": "*", "order": "created_at.desc"}
        if tenant_id is not None:
            params["tenant_id"] = f"eq.{tenant_id}"
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_table(), params=params, raise_on_error=True)
        return [Document.model_validate(row) for row in resp.json()]

    async def do_delete(self, tenant_id: str, doc_id: str) -> bool:
        resp = await self.do_request(
            method="DELETE",
            endpoint=self._get_endpoint_table(),
            params={"id": f"eq.{doc_id}", "tenant_id": f"eq.{tenant_id}"},
            additional_headers={"Prefer": "return=representation"},
            raise_on_error=True,
        )
        return bool(resp.json())

    async def do_log_request(self, entry: RequestLogEntry) -> None:
        await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_requests(),
            json=entry.model_dump(mode="json"),
            additional_headers={"Prefer": "return=minimal"},
            raise_on_error=True,
        )

    async def do_count_requests(self, user_id: str, since: datetime) -> int:
        resp = await self.do_request(
            method="HEAD",
            endpoint=self._get_endpoint_requests(),
            params={"select": "user_id", "user_id": f"eq.{user_id}", "created_at": f"gte.{since.isoformat()}"},
            additional_headers={"Prefer": "count=exact"},
            raise_on_error=True,
        )
        # "0-49/120" or "*/0"
        total = resp.headers.get("content-range", "*/0").rsplit("/", 1)[-1]
        return int(total) if total.isdigit() else 0
