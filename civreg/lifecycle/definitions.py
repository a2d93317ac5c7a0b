# civreg/lifecycle/definitions.py
"""
Lifecycle definitions for every request type.

A lifecycle is the ordered forward path a request walks through plus the
side exits (rejection, cancellation, return, expiry) reachable from several
states. Transition checks, progress rendering and the staff action buttons
are all derived from these tables, keyed by request-type name.
"""
import re
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

STATUS_SYNONYMS = {
    "CANCELED": "CANCELLED",
    "INPROGRESS": "IN_PROGRESS",
    "ON_GOING": "ONGOING",
    "COMPLETE": "COMPLETED",
    "FORPICKUP": "FOR_PICKUP",
}


def normalize_status(status: Any) -> str:
    """Canonical form of a status value: upper case, `-`/spaces as `_`.

    Anything that is not a string normalizes to "" so lookups simply miss.
    """
    if not isinstance(status, str):
        return ""
    s = re.sub(r"[\s\-]+", "_", status.strip().upper())
    return STATUS_SYNONYMS.get(s, s)


@dataclass(frozen=True)
class Lifecycle:
    kind: str
    title: str
    resource: str
    collection: str
    forward: Tuple[str, ...]
    optional: FrozenSet[str] = frozenset()
    side_exits: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    extra: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    equivalents: Mapping[str, str] = field(default_factory=dict)
    requirements: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    timestamps: Mapping[str, str] = field(default_factory=dict)
    deadlines: Mapping[str, Tuple[str, int]] = field(default_factory=dict)
    search_fields: Tuple[str, ...] = ()
    reference_field: str = "referenceNumber"
    reference_prefix: str = "REQ"
    lowercase_wire: bool = False
    has_priority: bool = False
    acknowledge_status: Optional[str] = None
    override_actions: Tuple[str, ...] = ()
    override_targets: Mapping[str, str] = field(default_factory=dict)

    @property
    def initial(self) -> str:
        return self.forward[0]

    @property
    def statuses(self) -> Tuple[str, ...]:
        seen: List[str] = []
        candidates = [*self.forward, *self.equivalents, *self.side_exits]
        for targets in self.extra.values():
            candidates.extend(targets)
        for s in candidates:
            if s not in seen:
                seen.append(s)
        return tuple(seen)

    def knows(self, status: Any) -> bool:
        return normalize_status(status) in self.statuses

    def rank(self, status: Any) -> Optional[int]:
        """Position on the forward path, or None for side exits and unknown values."""
        s = normalize_status(status)
        s = self.equivalents.get(s, s)
        if s in self.forward:
            return self.forward.index(s)
        return None

    def allowed_from(self, status: Any) -> FrozenSet[str]:
        s = normalize_status(status)
        targets = set()
        pos = self.rank(s)
        if pos is not None:
            # next state, plus the ones after it while the skipped states are optional
            for nxt in self.forward[pos + 1:]:
                targets.add(nxt)
                if nxt not in self.optional:
                    break
        targets.update(self.extra.get(s, ()))
        for exit_status, sources in self.side_exits.items():
            if s in sources:
                targets.add(exit_status)
        return frozenset(targets)

    def transitions(self) -> Dict[str, FrozenSet[str]]:
        return {s: self.allowed_from(s) for s in self.statuses}

    def is_terminal(self, status: Any) -> bool:
        return self.knows(status) and not self.allowed_from(status)

    def missing_requirements(self, status: Any, payload: Mapping[str, Any]) -> List[str]:
        """Fields required to enter `status`; any one of them being non-blank is enough."""
        fields = self.requirements.get(normalize_status(status), ())
        if not fields:
            return []
        if any(str(payload.get(f) or "").strip() for f in fields):
            return []
        return list(fields)

    def wire_status(self, status: Any) -> Any:
        if not isinstance(status, str):
            return status
        s = normalize_status(status)
        return s.lower() if self.lowercase_wire else s


_DR_EARLY = ("SUBMITTED", "PENDING_VERIFICATION", "PROCESSING")

DEATH_REGISTRATION = Lifecycle(
    kind="death_registration",
    title="Death Registration",
    resource="death-registrations",
    collection="death_registrations",
    forward=("SUBMITTED", "PENDING_VERIFICATION", "PROCESSING", "PAID", "REGISTERED", "FOR_PICKUP", "CLAIMED"),
    optional=frozenset({"PENDING_VERIFICATION"}),
    side_exits={"REJECTED": _DR_EARLY, "EXPIRED": _DR_EARLY, "RETURNED": _DR_EARLY},
    extra={"RETURNED": ("SUBMITTED",)},
    requirements={
        "PAID": ("orNumber",),
        "REJECTED": ("rejectionReason", "remarks"),
        "RETURNED": ("remarks",),
    },
    timestamps={
        "PROCESSING": "verifiedAt",
        "PAID": "paidAt",
        "REGISTERED": "registeredAt",
        "FOR_PICKUP": "readyAt",
        "CLAIMED": "claimedAt",
        "REJECTED": "rejectedAt",
        "RETURNED": "returnedAt",
    },
    search_fields=("registrationNumber", "deceasedName", "informantName", "requesterName"),
    reference_field="registrationNumber",
    reference_prefix="DR",
    override_actions=("approve", "reject", "waive_fee", "adjust_fee", "reset_status"),
    override_targets={"approve": "REGISTERED", "reject": "REJECTED", "reset_status": "SUBMITTED"},
)

_PERMIT_OPEN = ("SUBMITTED", "PENDING_VERIFICATION", "FOR_PAYMENT", "PAID")

BURIAL_PERMIT = Lifecycle(
    kind="burial_permit",
    title="Burial / Cremation / Exhumation Permit",
    resource="permits",
    collection="permits",
    forward=("SUBMITTED", "PENDING_VERIFICATION", "FOR_PAYMENT", "PAID", "ISSUED", "CLAIMED"),
    optional=frozenset({"PENDING_VERIFICATION"}),
    side_exits={"REJECTED": _PERMIT_OPEN, "CANCELLED": _PERMIT_OPEN},
    requirements={"PAID": ("orNumber",), "REJECTED": ("rejectionReason", "remarks")},
    timestamps={
        "PAID": "paidAt",
        "ISSUED": "issuedAt",
        "CLAIMED": "claimedAt",
        "REJECTED": "rejectedAt",
        "CANCELLED": "cancelledAt",
    },
    search_fields=("permitNumber", "deceasedName", "requesterName", "permitType"),
    reference_field="permitNumber",
    reference_prefix="BP",
    lowercase_wire=True,
    override_actions=("approve", "reject", "waive_fee", "adjust_fee", "reset_status"),
    override_targets={"approve": "ISSUED", "reject": "REJECTED", "reset_status": "SUBMITTED"},
)

_CERT_OPEN = ("SUBMITTED", "PENDING_VERIFICATION", "FOR_PAYMENT", "PAID")

CERTIFICATE_REQUEST = Lifecycle(
    kind="certificate_request",
    title="Certificate Request",
    resource="certificates",
    collection="certificate_requests",
    forward=("SUBMITTED", "PENDING_VERIFICATION", "FOR_PAYMENT", "PAID", "PROCESSING", "READY_FOR_PICKUP", "CLAIMED"),
    optional=frozenset({"PENDING_VERIFICATION", "FOR_PAYMENT", "PAID"}),
    side_exits={"REJECTED": _CERT_OPEN, "CANCELLED": _CERT_OPEN},
    requirements={"PAID": ("orNumber",), "REJECTED": ("rejectionReason", "remarks")},
    timestamps={
        "PAID": "paidAt",
        "PROCESSING": "processingAt",
        "READY_FOR_PICKUP": "readyAt",
        "CLAIMED": "claimedAt",
        "REJECTED": "rejectedAt",
        "CANCELLED": "cancelledAt",
    },
    search_fields=("requestNumber", "requesterName", "deceasedName", "certificateType"),
    reference_field="requestNumber",
    reference_prefix="CR",
    override_actions=("approve", "reject", "waive_fee", "adjust_fee", "expedite"),
    override_targets={
        "approve": "READY_FOR_PICKUP",
        "reject": "REJECTED",
        "waive_fee": "READY_FOR_PICKUP",
        "expedite": "PROCESSING",
    },
)

WATER_CONNECTION = Lifecycle(
    kind="water_connection",
    title="Water Connection",
    resource="water-connections",
    collection="water_connections",
    forward=(
        "PENDING", "FOR_INSPECTION", "INSPECTED", "FOR_APPROVAL", "APPROVED",
        "FOR_PAYMENT", "PAYMENT_VERIFIED", "FOR_INSTALLATION", "INSTALLED", "ACTIVE",
    ),
    side_exits={
        "REJECTED": ("PENDING", "FOR_INSPECTION", "INSPECTED", "FOR_APPROVAL", "APPROVED", "FOR_PAYMENT"),
    },
    requirements={
        "REJECTED": ("rejectionReason",),
        "PAYMENT_VERIFIED": ("receiptNumber", "orNumber"),
        "INSTALLED": ("meterNumber",),
    },
    timestamps={
        "INSPECTED": "inspectedAt",
        "APPROVED": "approvedAt",
        "PAYMENT_VERIFIED": "paymentDate",
        "INSTALLED": "installedAt",
        "ACTIVE": "activatedAt",
        "REJECTED": "rejectedAt",
    },
    search_fields=("applicationNumber", "applicantFirstName", "applicantLastName", "propertyAddress", "barangay"),
    reference_field="applicationNumber",
    reference_prefix="WC",
)

WATER_ISSUE = Lifecycle(
    kind="water_issue",
    title="Water Issue",
    resource="water-issues",
    collection="water_issues",
    forward=("PENDING", "ACKNOWLEDGED", "ASSIGNED", "IN_PROGRESS", "RESOLVED", "CLOSED"),
    optional=frozenset({"ACKNOWLEDGED"}),
    side_exits={"CANCELLED": ("PENDING", "ACKNOWLEDGED")},
    equivalents={"ONGOING": "IN_PROGRESS", "COMPLETED": "RESOLVED"},
    requirements={
        "ACKNOWLEDGED": ("acknowledgedBy",),
        "ASSIGNED": ("assignedStaffId", "assignedStaffName"),
    },
    timestamps={
        "ACKNOWLEDGED": "acknowledgedAt",
        "ASSIGNED": "assignedAt",
        "IN_PROGRESS": "startedAt",
        "RESOLVED": "resolvedAt",
        "CLOSED": "closedAt",
        "CANCELLED": "cancelledAt",
    },
    search_fields=("ticketNumber", "reporterName", "accountNumber", "location", "description"),
    reference_field="ticketNumber",
    reference_prefix="WI",
    has_priority=True,
    acknowledge_status="ACKNOWLEDGED",
)

DRAINAGE = Lifecycle(
    kind="drainage",
    title="Drainage Request",
    resource="drainage",
    collection="drainage_requests",
    forward=("PENDING", "ACKNOWLEDGED", "FOR_APPROVAL", "APPROVED", "ASSIGNED", "ONGOING", "COMPLETED", "CLOSED"),
    optional=frozenset({"ACKNOWLEDGED", "FOR_APPROVAL", "APPROVED", "ASSIGNED"}),
    side_exits={"CANCELLED": ("PENDING", "ACKNOWLEDGED", "FOR_APPROVAL", "APPROVED")},
    equivalents={"IN_PROGRESS": "ONGOING", "RESOLVED": "COMPLETED"},
    requirements={
        "ACKNOWLEDGED": ("acknowledgedBy",),
        "ASSIGNED": ("assignedEngineerId", "assignedEngineerName"),
    },
    timestamps={
        "ACKNOWLEDGED": "acknowledgedAt",
        "APPROVED": "approvedAt",
        "ASSIGNED": "assignedAt",
        "ONGOING": "startedAt",
        "COMPLETED": "completedAt",
        "CLOSED": "closedAt",
        "CANCELLED": "cancelledAt",
    },
    search_fields=("ticketNumber", "requesterName", "location", "description"),
    reference_field="ticketNumber",
    reference_prefix="DG",
    has_priority=True,
    acknowledge_status="ACKNOWLEDGED",
)

AMENITY_RESERVATION = Lifecycle(
    kind="amenity_reservation",
    title="Amenity Reservation",
    resource="amenity-reservations",
    collection="amenity_reservations",
    forward=("PENDING_REVIEW", "AWAITING_PAYMENT", "PAID", "APPROVED", "CHECKED_IN", "COMPLETED"),
    optional=frozenset({"PAID"}),
    side_exits={
        "REJECTED": ("PENDING_REVIEW", "AWAITING_PAYMENT", "PAID"),
        "CANCELLED": ("PENDING_REVIEW", "AWAITING_PAYMENT", "PAID", "APPROVED"),
    },
    requirements={"REJECTED": ("rejectionReason",), "CANCELLED": ("cancellationReason",)},
    timestamps={
        "AWAITING_PAYMENT": "reviewedAt",
        "PAID": "paidAt",
        "APPROVED": "approvedAt",
        "CHECKED_IN": "checkedInAt",
        "COMPLETED": "completedAt",
        "REJECTED": "rejectedAt",
        "CANCELLED": "cancelledAt",
    },
    deadlines={"AWAITING_PAYMENT": ("paymentDueAt", 24)},
    search_fields=("bookingCode", "requesterName", "requesterEmail", "amenityName"),
    reference_field="bookingCode",
    reference_prefix="AR",
)

RIS = Lifecycle(
    kind="ris",
    title="Requisition and Issue Slip",
    resource="ris",
    collection="ris_requests",
    forward=("PENDING_APPROVAL", "APPROVED", "ISSUED"),
    side_exits={"REJECTED": ("PENDING_APPROVAL",), "CANCELLED": ("PENDING_APPROVAL",)},
    extra={"PENDING_APPROVAL": ("NO_STOCK",)},
    equivalents={"NO_STOCK": "APPROVED"},
    requirements={"REJECTED": ("rejectionReason", "remarks")},
    timestamps={
        "APPROVED": "approvedAt",
        "NO_STOCK": "approvedAt",
        "ISSUED": "issuedAt",
        "REJECTED": "rejectedAt",
        "CANCELLED": "cancelledAt",
    },
    search_fields=("risNumber", "requestingOffice", "requestedBy", "purpose"),
    reference_field="risNumber",
    reference_prefix="RIS",
)

ISSUANCE = Lifecycle(
    kind="issuance",
    title="Asset Issuance",
    resource="issuances",
    collection="issuances",
    forward=("ISSUED", "ACKNOWLEDGED"),
    requirements={"ACKNOWLEDGED": ("acknowledgedBy",)},
    timestamps={"ACKNOWLEDGED": "acknowledgedAt"},
    search_fields=("issuanceNumber", "issuedTo", "risNumber"),
    reference_field="issuanceNumber",
    reference_prefix="ISS",
    acknowledge_status="ACKNOWLEDGED",
)

LIFECYCLES: Dict[str, Lifecycle] = {
    lc.kind: lc
    for lc in (
        DEATH_REGISTRATION,
        BURIAL_PERMIT,
        CERTIFICATE_REQUEST,
        WATER_CONNECTION,
        WATER_ISSUE,
        DRAINAGE,
        AMENITY_RESERVATION,
        RIS,
        ISSUANCE,
    )
}

RESOURCES: Dict[str, Lifecycle] = {lc.resource: lc for lc in LIFECYCLES.values()}


def get_lifecycle(name: Any) -> Optional[Lifecycle]:
    """Lookup by request-type name (`death_registration`) or resource (`death-registrations`)."""
    if not isinstance(name, str):
        return None
    key = name.strip()
    if key in RESOURCES:
        return RESOURCES[key]
    return LIFECYCLES.get(key.lower().replace("-", "_"))


def lifecycle_for_resource(resource: Any) -> Optional[Lifecycle]:
    if not isinstance(resource, str):
        return None
    return RESOURCES.get(resource.strip().lower())
