"""Pydantic models describing the HubSpot CRM v3 payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from destkit.domain.reconciliation.contracts import BatchResponse, ErrorEntry, RemoteRecord


def _id_to_str(value: object) -> object:
    if isinstance(value, int):
        return str(value)
    return value


def _property_to_str(value: object) -> str | None:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class HubSpotBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ContactResult(HubSpotBaseModel):
    id: str
    properties: dict[str, str | None] = Field(default_factory=dict[str, "str | None"])

    _normalize_id = field_validator("id", mode="before")(_id_to_str)

    @field_validator("properties", mode="before")
    @classmethod
    def _stringify_properties(cls, value: object) -> object:
        if isinstance(value, dict):
            return {str(key): _property_to_str(item) for key, item in value.items()}
        return value

    def to_remote_record(self) -> RemoteRecord:
        return RemoteRecord(remote_id=self.id, properties=dict(self.properties))


class ErrorContext(HubSpotBaseModel):
    ids: list[str] = Field(default_factory=list[str])

    @field_validator("ids", mode="before")
    @classmethod
    def _normalize_ids(cls, value: object) -> object:
        if isinstance(value, list):
            return [_id_to_str(item) for item in value]
        return value


class BatchError(HubSpotBaseModel):
    status: str = "error"
    category: str
    message: str = ""
    context: ErrorContext = Field(default_factory=ErrorContext)

    def to_error_entry(self) -> ErrorEntry:
        return ErrorEntry(
            category=self.category,
            message=self.message,
            affected_identifiers=tuple(self.context.ids),
            status=self.status,
        )


class BatchContactResponse(HubSpotBaseModel):
    status: str | None = None
    results: list[ContactResult] = Field(default_factory=list[ContactResult])
    num_errors: int | None = Field(default=None, alias="numErrors")
    errors: list[BatchError] = Field(default_factory=list[BatchError])

    def to_batch_response(self) -> BatchResponse:
        return BatchResponse(
            results=tuple(result.to_remote_record() for result in self.results),
            errors=tuple(error.to_error_entry() for error in self.errors),
        )


class ErrorResponse(HubSpotBaseModel):
    status: str = "error"
    message: str = ""
    category: str | None = None
    correlation_id: str | None = Field(default=None, alias="correlationId")


class PropertyDefinition(HubSpotBaseModel):
    name: str
    label: str = ""
    type: str | None = None
    has_unique_value: bool = Field(default=False, alias="hasUniqueValue")
    hidden: bool = False


class PropertiesResponse(HubSpotBaseModel):
    results: list[PropertyDefinition] = Field(default_factory=list[PropertyDefinition])
