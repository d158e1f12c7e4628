import time

from pydantic import BaseModel, ConfigDict


def now_ms() -> int:
    """Client clock in epoch milliseconds, the unit every document timestamp uses."""
    return int(time.time() * 1000)


class DocumentModel(BaseModel):
    """Pydantic model stored as a camelCase JSON document."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @classmethod
    def from_document(cls, doc_id: str, data: dict | None):
        if data is None:
            return None
        return cls.model_validate({**data, "id": doc_id})

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, exclude={"id"})
