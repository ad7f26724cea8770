"""
Resource records (Client, Service, Session) and the descriptors that
tell the generic binding how each one lives on the REST API.

Records are what the server returned, nothing more: identifiers and
timestamps are assigned remotely and are never produced here.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

log = logging.getLogger(__name__)

# Set by the server, never sent in a request body.
READ_ONLY_FIELDS = ("id", "createdAt", "updatedAt")


def parse_timestamp(raw: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp; a trailing Z is accepted."""
    if not raw:
        return None
    try:
        value = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        log.debug("Unparseable timestamp %r", raw)
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def format_timestamp(value: datetime) -> str:
    """UTC ISO-8601 with a Z suffix, the form parse_timestamp reads back."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _wire_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return format_timestamp(value)
    return value


def _number(raw: Any) -> float | None:
    if raw is None or raw == "":
        return None
    return float(raw)


@dataclass
class SessionSummary:
    """A session as embedded in a Client payload."""

    id: str
    montant_total: float = 0.0


@dataclass
class Client:
    id: str
    nom: str
    email: str | None = None
    sessions: list[SessionSummary] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_json(cls, data: dict) -> "Client":
        return cls(
            id=str(data["id"]),
            nom=data.get("nom", ""),
            email=data.get("email"),
            sessions=[
                SessionSummary(id=str(s.get("id", "")), montant_total=_number(s.get("montantTotal")) or 0.0)
                for s in data.get("sessions") or []
            ],
            created_at=parse_timestamp(data.get("createdAt")),
            updated_at=parse_timestamp(data.get("updatedAt")),
        )


@dataclass
class Session:
    """A billed block of time for one client."""

    id: str
    debut_session: datetime | None
    tarif_horaire: float
    montant_total: float
    client_id: str
    fin_session: datetime | None = None
    duree: int | None = None           # minutes
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_json(cls, data: dict) -> "Session":
        duree = data.get("duree")
        return cls(
            id=str(data["id"]),
            debut_session=parse_timestamp(data.get("debutSession")),
            fin_session=parse_timestamp(data.get("finSession")),
            duree=int(duree) if duree is not None else None,
            tarif_horaire=_number(data.get("tarifHoraire")) or 0.0,
            montant_total=_number(data.get("montantTotal")) or 0.0,
            client_id=str(data.get("clientId") or ""),
            created_at=parse_timestamp(data.get("createdAt")),
            updated_at=parse_timestamp(data.get("updatedAt")),
        )


@dataclass
class Service(Session):
    """Services share the session shape on the wire."""

    @classmethod
    def from_json(cls, data: dict) -> "Service":
        base = Session.from_json(data)
        return cls(**vars(base))


@dataclass(frozen=True)
class ResourceSpec:
    """
    Everything the generic binding needs to know about one resource type.

    fields maps python attribute names to wire (JSON) names for the
    writable scalar fields.  required lists attribute names that a Create
    must populate.
    """

    name: str
    path: str
    fields: dict[str, str]
    required: tuple[str, ...]
    parse: Callable[[dict], Any]
    update_returns_record: bool = False

    def item_path(self, record_id: str) -> str:
        return f"{self.path}/{record_id}"

    def to_wire(self, payload: dict) -> dict:
        """
        Translate caller keys (attribute or wire names) into a request body.

        Read-only and unknown keys are dropped; datetimes become
        ISO-8601 strings.
        """
        wire_names = set(self.fields.values())
        body = {}
        for key, value in payload.items():
            if key in self.fields:
                body[self.fields[key]] = _wire_value(value)
            elif key in wire_names:
                body[key] = _wire_value(value)
            else:
                log.debug("%s: dropping non-writable field %r", self.name, key)
        return body


_SESSION_FIELDS = {
    "debut_session": "debutSession",
    "fin_session": "finSession",
    "duree": "duree",
    "tarif_horaire": "tarifHoraire",
    "montant_total": "montantTotal",
    "client_id": "clientId",
}

CLIENT = ResourceSpec(
    name="client",
    path="/api/client",
    fields={"nom": "nom", "email": "email"},
    required=("nom",),
    parse=Client.from_json,
    update_returns_record=True,
)

SERVICE = ResourceSpec(
    name="service",
    path="/api/service",
    fields=dict(_SESSION_FIELDS),
    required=("debut_session", "tarif_horaire", "client_id"),
    parse=Service.from_json,
)

SESSION = ResourceSpec(
    name="session",
    path="/api/session",
    fields=dict(_SESSION_FIELDS),
    required=("debut_session", "tarif_horaire", "client_id"),
    parse=Session.from_json,
)

RESOURCES = {spec.name: spec for spec in (CLIENT, SERVICE, SESSION)}
