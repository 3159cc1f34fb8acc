"""Selection, order and archive endpoints."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Header, Request, Response
from fastapi.responses import JSONResponse

from gallery_delivery.api.identity import (
    Requester,
    get_requester,
    require_service_token,
)
from gallery_delivery.api.models import (
    ApproveSelectionRequest,
    ArchiveCompletion,
    DenyChangeRequest,
    GenerateArchiveRequest,
)
from gallery_delivery.containers import AppContainer
from gallery_delivery.domain.delivery import ArchiveStatus
from gallery_delivery.domain.orders import (
    ApprovalResult,
    ArchiveKind,
    DeliveryResult,
    SelectionState,
)
from gallery_delivery.services.archives import ArchiveRequest

router = APIRouter(dependencies=[Depends(require_service_token)])


def _container(request: Request) -> AppContainer:
    return request.app.state.container


def _authorize_reader(
    container: AppContainer, requester: Requester, gallery_id: str
) -> None:
    if requester.owner_id:
        container.order_service.require_owner(gallery_id, requester.owner_id)
    else:
        requester.require_client(gallery_id)


@router.post("/galleries/{gallery_id}/selections/approve")
async def approve_selection(
    gallery_id: str,
    payload: ApproveSelectionRequest,
    request: Request,
    requester: Requester = Depends(get_requester),
) -> dict[str, object]:
    """Approve the client's photo selection."""
    client_id = requester.require_client(gallery_id)
    result = await _container(request).order_service.approve_selection(
        gallery_id, client_id, payload.selected_keys
    )
    return _approval_payload(result)


@router.get("/galleries/{gallery_id}/selections")
async def get_selection(
    gallery_id: str,
    request: Request,
    requester: Requester = Depends(get_requester),
) -> dict[str, object]:
    """Return the gallery's current selection state."""
    container = _container(request)
    _authorize_reader(container, requester, gallery_id)
    state = container.order_service.get_selection_state(gallery_id)
    return _selection_payload(gallery_id, state)


@router.post("/galleries/{gallery_id}/selections/change-request")
async def request_changes(
    gallery_id: str,
    request: Request,
    requester: Requester = Depends(get_requester),
) -> dict[str, object]:
    """Ask the photographer to unlock an approved selection."""
    client_id = requester.require_client(gallery_id)
    order = await _container(request).order_service.request_changes(
        gallery_id, client_id
    )
    return {"galleryId": gallery_id, "orderId": order.order_id}


@router.post("/galleries/{gallery_id}/orders/{order_id}/change-request/approve")
async def approve_change_request(
    gallery_id: str,
    order_id: str,
    request: Request,
    requester: Requester = Depends(get_requester),
) -> dict[str, object]:
    """Unlock the selection for the client."""
    order = await _container(request).order_service.approve_change_request(
        gallery_id, requester.require_owner(), order_id
    )
    return {"galleryId": gallery_id, "orderId": order.order_id, "unlocked": True}


@router.post("/galleries/{gallery_id}/orders/{order_id}/change-request/deny")
async def deny_change_request(
    gallery_id: str,
    order_id: str,
    request: Request,
    payload: DenyChangeRequest | None = None,
    requester: Requester = Depends(get_requester),
) -> dict[str, object]:
    """Keep the approved selection and optionally block further requests."""
    body = payload or DenyChangeRequest()
    status = await _container(request).order_service.deny_change_request(
        gallery_id,
        requester.require_owner(),
        order_id,
        body.reason,
        prevent_future_change_requests=body.prevent_future_change_requests,
    )
    return {
        "galleryId": gallery_id,
        "orderId": order_id,
        "deliveryStatus": status.value,
        "changeRequestsBlocked": body.prevent_future_change_requests,
    }


@router.post("/galleries/{gallery_id}/orders/{order_id}/deliver")
async def mark_delivered(
    gallery_id: str,
    order_id: str,
    request: Request,
    requester: Requester = Depends(get_requester),
) -> dict[str, object]:
    """Mark the order delivered and release its originals."""
    result = _container(request).order_service.mark_delivered(
        gallery_id, requester.require_owner(), order_id
    )
    return _delivery_payload(result)


@router.post("/galleries/{gallery_id}/orders/{order_id}/archives/{kind}")
async def generate_archive(  # noqa: PLR0913
    gallery_id: str,
    order_id: str,
    kind: ArchiveKind,
    request: Request,
    payload: GenerateArchiveRequest | None = None,
    requester: Requester = Depends(get_requester),
) -> JSONResponse:
    """Start a background archive build."""
    container = _container(request)
    container.order_service.require_owner(gallery_id, requester.require_owner())
    archive = await container.archive_service.regenerate(
        gallery_id, order_id, kind, payload.keys if payload else None
    )
    return JSONResponse(status_code=202, content=_archive_request_payload(archive))


@router.get("/galleries/{gallery_id}/orders/{order_id}/archives/{kind}")
async def get_archive_status(
    gallery_id: str,
    order_id: str,
    kind: ArchiveKind,
    request: Request,
    requester: Requester = Depends(get_requester),
) -> dict[str, object]:
    """Return whether the order's archive is ready."""
    container = _container(request)
    _authorize_reader(container, requester, gallery_id)
    status = container.archive_service.get_status(gallery_id, order_id, kind)
    return _archive_status_payload(status)


@router.post("/internal/archives/complete")
async def record_archive_completion(
    payload: ArchiveCompletion, request: Request
) -> dict[str, object]:
    """Callback for the archive build task."""
    recorded = _container(request).archive_service.record_completion(
        payload.gallery_id,
        payload.order_id,
        payload.kind,
        payload.zip_key,
        payload.fingerprint,
    )
    return {"recorded": recorded}


@router.get("/dashboard/order-statuses")
async def order_statuses(
    request: Request,
    requester: Requester = Depends(get_requester),
    if_none_match: str | None = Header(default=None),
) -> Response:
    """Return archive activity across the owner's orders."""
    service = _container(request).delivery_status_service
    statuses = await service.get_order_statuses(
        requester.require_owner(), if_none_match
    )
    headers = {"ETag": statuses.etag, "Cache-Control": "no-cache"}
    if statuses.not_modified:
        return Response(status_code=304, headers=headers)
    return JSONResponse(
        content={
            "orders": statuses.orders,
            "timestamp": datetime.now(tz=UTC).isoformat(),
        },
        headers=headers,
    )


def _approval_payload(result: ApprovalResult) -> dict[str, object]:
    payload: dict[str, object] = {
        "galleryId": result.gallery_id,
        "clientId": result.client_id,
        "orderId": result.order_id,
        "selectedCount": result.selected_count,
        "overageCount": result.overage_count,
        "overageCents": result.overage_cents,
        "status": result.status,
    }
    if result.zip_key:
        payload["zipKey"] = result.zip_key
    return payload


def _selection_payload(gallery_id: str, state: SelectionState) -> dict[str, object]:
    return {
        "galleryId": gallery_id,
        "selectedKeys": state.selected_keys,
        "selectedCount": state.selected_count,
        "overageCount": state.overage_count,
        "overageCents": state.overage_cents,
        "approved": state.approved,
        "canSelect": state.can_select,
        "canRequestChanges": state.can_request_changes,
        "changeRequestPending": state.change_request_pending,
        "changeRequestsBlocked": state.change_requests_blocked,
        "hasDeliveredOrder": state.has_delivered_order,
        "selectionEnabled": state.selection_enabled,
        "orderId": state.active_order_id,
        "deliveryStatus": state.active_status.value if state.active_status else None,
        "pricingPackage": {
            "packageName": state.pricing_package.package_name,
            "includedCount": state.pricing_package.included_count,
            "extraPriceCents": state.pricing_package.extra_price_cents,
            "packagePriceCents": state.pricing_package.package_price_cents,
        },
    }


def _delivery_payload(result: DeliveryResult) -> dict[str, object]:
    return {
        "galleryId": result.gallery_id,
        "orderId": result.order_id,
        "deliveryStatus": result.delivery_status.value,
        "deliveredAt": result.delivered_at.isoformat(),
        "deletedCount": result.deleted_count,
        "originalsBytesFreed": result.originals_bytes_freed,
    }


def _archive_request_payload(archive: ArchiveRequest) -> dict[str, object]:
    return {
        "galleryId": archive.gallery_id,
        "orderId": archive.order_id,
        "kind": archive.kind.value,
        "started": archive.started,
        "hash": archive.fingerprint,
    }


def _archive_status_payload(status: ArchiveStatus) -> dict[str, object]:
    return {
        "galleryId": status.gallery_id,
        "orderId": status.order_id,
        "kind": status.kind.value,
        "status": status.status,
        "generating": status.generating,
        "ready": status.ready,
    }
