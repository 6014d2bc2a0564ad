from pydantic import BaseModel, Field, field_validator


class AskRequest(BaseModel):
    query: str
    tenant_id: str = Field(min_length=1)
    user_id: str | None = None
    user_name: str | None = None


class DocumentRequest(BaseModel):
    tenant_id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    content: str = Field(min_length=1)
    id: str | None = None
    source: str | None = None
    category: str = "geral"

    @field_validator("tenant_id", "title", "content")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value
