from pydantic import BaseModel


class DeleteResponse(BaseModel):
    status: str
    tenant_id: str
    document_id: str
    record_existed: bool
