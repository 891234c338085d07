from datetime import datetime
from email.utils import parsedate_to_datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Mapping, Optional
from .abort import AbortSignal


class LeaseTarget(str, Enum):
    CONTAINER = "container"
    BLOB = "blob"


class LeaseAction(str, Enum):
    ACQUIRE = "acquire"
    CHANGE = "change"
    RELEASE = "release"
    RENEW = "renew"
    BREAK = "break"


class LeaseState(str, Enum):
    AVAILABLE = "available"
    LEASED = "leased"
    EXPIRED = "expired"
    BREAKING = "breaking"
    BROKEN = "broken"


class ActiveLease(BaseModel):
    lease_id: str
    duration: int  # -1 is infinite
    expiry: Optional[float] = None  # Unix timestamp, None when infinite
    break_at: Optional[float] = None

    def state(self, now: float) -> LeaseState:
        if self.break_at is not None:
            return LeaseState.BREAKING if now < self.break_at else LeaseState.BROKEN
        if self.expiry is not None and now >= self.expiry:
            return LeaseState.EXPIRED
        return LeaseState.LEASED


class Resource(BaseModel):
    etag: str
    last_modified: datetime


class OutgoingMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    body: str
    label: str


class Scientist(BaseModel):
    name: str
    first_name: str

    def to_message(self, label: str = "Scientist") -> OutgoingMessage:
        return OutgoingMessage(body=f"{self.first_name} {self.name}", label=label)


class ModifiedAccessConditions(BaseModel):
    """Conditions the service checks before applying a lease action.

    Field names match the SDK's generated ModifiedAccessConditions, so an
    instance is handed to the generated operations as is. Container leases
    only honour the two date conditions.
    """

    if_modified_since: Optional[datetime] = None
    if_unmodified_since: Optional[datetime] = None
    if_match: Optional[str] = None
    if_none_match: Optional[str] = None
    if_tags: Optional[str] = None


class LeaseOperationOptions(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    abort_signal: Optional[AbortSignal] = None
    modified_access_conditions: Optional[ModifiedAccessConditions] = None


def _parse_http_date(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return parsedate_to_datetime(value)


class Lease(BaseModel):
    """Parsed headers of a lease operation response.

    http_response is the raw azure-core response the headers came from.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    etag: Optional[str] = None
    last_modified: Optional[datetime] = None
    lease_id: Optional[str] = None
    lease_time: Optional[int] = None  # seconds
    request_id: Optional[str] = None
    version: Optional[str] = None
    date: Optional[datetime] = None
    error_code: Optional[str] = None
    http_response: Optional[Any] = Field(default=None, exclude=True, repr=False)

    @classmethod
    def from_headers(
        cls, headers: Mapping[str, Any], http_response: Any = None
    ) -> "Lease":
        # The generated operations key headers by their wire names.
        headers = {key.lower(): value for key, value in headers.items()}
        lease_time = headers.get("x-ms-lease-time")
        return cls(
            etag=headers.get("etag"),
            last_modified=_parse_http_date(headers.get("last-modified")),
            lease_id=headers.get("x-ms-lease-id"),
            lease_time=int(lease_time) if lease_time is not None else None,
            request_id=headers.get("x-ms-request-id"),
            version=headers.get("x-ms-version"),
            date=_parse_http_date(headers.get("date")),
            error_code=headers.get("x-ms-error-code"),
            http_response=http_response,
        )
