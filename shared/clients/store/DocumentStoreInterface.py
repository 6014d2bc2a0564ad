"""Record store for documents and their ingestion outcome.

The store is a plain key-value store keyed by (tenant_id, document id);
it never holds chunks or vectors. It also keeps the log of asked questions
behind the per-user request limit.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from shared.models.answer import RequestLogEntry
from shared.models.document import Document


class DocumentStoreInterface(ABC):

    ##########################################
    ################ GETTER ##################
    ##########################################

    @abstractmethod
    def get_store_engine(self) -> str:
        """Returns the name of the store backend. E.g. "memory" """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    @abstractmethod
    async def do_get(self, tenant_id: str, doc_id: str) -> Document | None:
        """Fetch a document, or None if the tenant has no such document."""
        pass

    @abstractmethod
    async def do_save(self, document: Document) -> None:
        """Insert or replace a document record."""
        pass

    @abstractmethod
    async def do_list(self, tenant_id: str | None = None) -> list[Document]:
        """List the documents of one tenant, or of every tenant when tenant_id is None."""
        pass

    @abstractmethod
    async def do_delete(self, tenant_id: str, doc_id: str) -> bool:
        """Delete a document record. Returns False if it did not exist."""
        pass

    @abstractmethod
    async def do_log_request(self, entry: RequestLogEntry) -> None:
        """Record a question asked through the answer endpoint."""
        pass

    @abstractmethod
    async def do_count_requests(self, user_id: str, since: datetime) -> int:
        """Count the questions ``user_id`` asked at or after ``since``."""
        pass
