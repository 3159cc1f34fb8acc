"""Pydantic models for request payloads."""

from pydantic import BaseModel, ConfigDict, Field

from gallery_delivery.domain.orders import ArchiveKind


class ApproveSelectionRequest(BaseModel):
    """Client selection approval payload."""

    model_config = ConfigDict(populate_by_name=True)

    selected_keys: list[str] = Field(default_factory=list, alias="selectedKeys")


class DenyChangeRequest(BaseModel):
    """Owner's denial of a change request."""

    model_config = ConfigDict(populate_by_name=True)

    reason: str | None = None
    prevent_future_change_requests: bool = Field(
        default=False, alias="preventFutureChangeRequests"
    )


class GenerateArchiveRequest(BaseModel):
    """Optional explicit key set for an archive build."""

    keys: list[str] | None = None


class ArchiveCompletion(BaseModel):
    """Callback payload sent by the archive build task."""

    model_config = ConfigDict(populate_by_name=True)

    gallery_id: str = Field(alias="galleryId")
    order_id: str = Field(alias="orderId")
    kind: ArchiveKind = ArchiveKind.ORIGINALS
    zip_key: str | None = Field(default=None, alias="zipKey")
    fingerprint: str | None = Field(default=None, alias="hash")
