from typing import Any, ClassVar, Dict

from pydantic import BaseModel, ValidationError

from hellogt.core.errors import DecodeError


class DocumentModel(BaseModel):
    """
    Typed view over a store document.
    Stored field names are camelCase aliases; the document key maps to `id`.
    """

    collection_name: ClassVar[str] = ""

    class Config:
        populate_by_name = True

    @classmethod
    def from_document(cls, document_id: str, data: Dict[str, Any]):
        """Validate raw store fields, raising DecodeError instead of defaulting."""
        try:
            return cls.model_validate({**data, "id": document_id})
        except ValidationError as e:
            missing = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            raise DecodeError(cls.collection_name or cls.__name__, document_id, f"invalid fields: {missing}") from e

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude={"id"})
