import uuid
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime
from fastapi import FastAPI, Request, Response
from typing import Dict, Optional
from azkit.core.models import LeaseAction, ModifiedAccessConditions, Resource
from .lease.in_memory import InMemoryLeaseManager, LeaseError

SERVICE_VERSION = "2018-11-09"

app = FastAPI(title="azkit Blob Lease Emulator")
lease_manager = InMemoryLeaseManager()

_SUCCESS_STATUS = {
    LeaseAction.ACQUIRE: 201,
    LeaseAction.CHANGE: 200,
    LeaseAction.RELEASE: 200,
    LeaseAction.RENEW: 200,
    LeaseAction.BREAK: 202,
}


def _http_date(value: datetime) -> str:
    return format_datetime(value, usegmt=True)


def _service_headers() -> Dict[str, str]:
    return {
        "x-ms-request-id": str(uuid.uuid4()),
        "x-ms-version": SERVICE_VERSION,
        "Date": _http_date(datetime.now(timezone.utc)),
    }


@app.exception_handler(LeaseError)
async def lease_error_handler(request: Request, exc: LeaseError):
    body = (
        '<?xml version="1.0" encoding="utf-8"?>'
        f"<Error><Code>{exc.error_code}</Code><Message>{exc}</Message></Error>"
    )
    headers = _service_headers()
    headers["x-ms-error-code"] = exc.error_code
    return Response(
        content=body,
        status_code=exc.status_code,
        media_type="application/xml",
        headers=headers,
    )


def _optional_date(value: Optional[str]) -> Optional[datetime]:
    # Unparseable dates are ignored, as HTTP requires for conditional headers.
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    # A -0000 zone parses as naive; HTTP dates are always GMT.
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _required(request: Request, name: str) -> str:
    value = request.headers.get(name)
    if not value:
        raise LeaseError(
            400, "MissingRequiredHeader", f"An HTTP header {name} is missing."
        )
    return value


def _required_int(request: Request, name: str) -> int:
    value = _required(request, name)
    try:
        return int(value)
    except ValueError:
        raise LeaseError(400, "InvalidHeaderValue", f"{name} is not an integer.")


async def _lease(path: str, request: Request, etag_conditions: bool) -> Response:
    try:
        action = LeaseAction(_required(request, "x-ms-lease-action"))
    except ValueError:
        raise LeaseError(
            400, "InvalidHeaderValue", "x-ms-lease-action is not a lease action."
        )

    conditions = ModifiedAccessConditions(
        if_modified_since=_optional_date(request.headers.get("if-modified-since")),
        if_unmodified_since=_optional_date(request.headers.get("if-unmodified-since")),
        if_match=request.headers.get("if-match"),
        if_none_match=request.headers.get("if-none-match"),
    )
    resource: Resource = await lease_manager.check_conditions(
        path, conditions, etag_conditions
    )

    headers = _service_headers()
    headers["ETag"] = resource.etag
    headers["Last-Modified"] = _http_date(resource.last_modified)

    if action == LeaseAction.ACQUIRE:
        lease = await lease_manager.acquire(
            path,
            _required_int(request, "x-ms-lease-duration"),
            request.headers.get("x-ms-proposed-lease-id"),
        )
        headers["x-ms-lease-id"] = lease.lease_id
    elif action == LeaseAction.CHANGE:
        lease = await lease_manager.change(
            path,
            _required(request, "x-ms-lease-id"),
            _required(request, "x-ms-proposed-lease-id"),
        )
        headers["x-ms-lease-id"] = lease.lease_id
    elif action == LeaseAction.RELEASE:
        await lease_manager.release(path, _required(request, "x-ms-lease-id"))
    elif action == LeaseAction.RENEW:
        lease = await lease_manager.renew(path, _required(request, "x-ms-lease-id"))
        headers["x-ms-lease-id"] = lease.lease_id
    else:
        break_period = None
        if request.headers.get("x-ms-lease-break-period") is not None:
            break_period = _required_int(request, "x-ms-lease-break-period")
        lease_time = await lease_manager.break_lease(path, break_period)
        headers["x-ms-lease-time"] = str(lease_time)

    return Response(status_code=_SUCCESS_STATUS[action], headers=headers)


def _check_comp(comp: Optional[str]):
    if comp != "lease":
        raise LeaseError(
            400,
            "InvalidQueryParameterValue",
            "Only comp=lease is supported by the emulator.",
        )


# URLs carry the account name as their first segment, as Azurite serves them:
# http://127.0.0.1:10000/devstoreaccount1/<container>[/<blob>]
@app.put("/{account}/{container}")
async def container_lease(
    account: str,
    container: str,
    request: Request,
    comp: Optional[str] = None,
    restype: Optional[str] = None,
):
    _check_comp(comp)
    if restype != "container":
        raise LeaseError(
            400, "InvalidQueryParameterValue", "restype=container is required."
        )
    return await _lease(f"{account}/{container}", request, etag_conditions=False)


@app.put("/{account}/{container}/{blob:path}")
async def blob_lease(
    account: str, container: str, blob: str, request: Request, comp: Optional[str] = None
):
    _check_comp(comp)
    return await _lease(f"{account}/{container}/{blob}", request, etag_conditions=True)
