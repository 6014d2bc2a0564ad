from datetime import datetime

from shared.clients.store.DocumentStoreInterface import DocumentStoreInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.answer import RequestLogEntry
from shared.models.document import Document


class DocumentStoreMemory(DocumentStoreInterface):
    """In-process store. Contents are lost on restart; meant for development and tests."""

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._records: dict[tuple[str, str], Document] = {}
        self._requests: list[RequestLogEntry] = []

    def get_store_engine(self) -> str:
        return "memory"

    async def do_get(self, tenant_id: str, doc_id: str) -> Document | None:
        record = self._records.get((tenant_id, doc_id))
        return record.model_copy() if record else None

    async def do_save(self, document: Document) -> None:
        self._records[(document.tenant_id, document.id)] = document.model_copy()

    async def do_list(self, tenant_id: str | None = None) -> list[Document]:
        return [
            doc.model_copy()
            for (doc_tenant, _), doc in sorted(self._records.items())
            if tenant_id is None or doc_tenant == tenant_id
        ]

    async def do_delete(self, tenant_id: str, doc_id: str) -> bool:
        return self._records.pop((tenant_id, doc_id), None) is not None

    async def do_log_request(self, entry: RequestLogEntry) -> None:
        self._requests.append(entry.model_copy())

    async def do_count_requests(self, user_id: str, since: datetime) -> int:
        # entries older than the window are never counted again
        self._requests = [entry for entry in self._requests if entry.created_at >= since]
        return sum(1 for entry in self._requests if entry.user_id == user_id)
