# civreg/lifecycle/actions.py
"""Staff action buttons available for a request in a given status."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Tuple

from civreg.lifecycle.definitions import get_lifecycle, normalize_status


@dataclass(frozen=True)
class Action:
    key: str
    label: str
    to_status: str
    requires: Tuple[str, ...] = ()
    defaults: Mapping[str, Any] = field(default_factory=dict)

    def validate(self, payload: Mapping[str, Any]) -> List[str]:
        """Required fields left blank in `payload`."""
        return [f for f in self.requires if not str((payload or {}).get(f) or "").strip()]

    def body(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        out = dict(self.defaults)
        out.update({k: v for k, v in (payload or {}).items() if v is not None})
        out["status"] = self.to_status
        return out


_DR_REVIEW = [
    Action("approve", "Approve Application", "PROCESSING",
           defaults={"remarks": "Documents verified and approved"}),
    Action("reject", "Reject Application", "REJECTED", requires=("remarks",)),
]

# Tables taken from the staff pages; other kinds derive theirs from the lifecycle.
ACTION_TABLES: Dict[str, Dict[str, List[Action]]] = {
    "death_registration": {
        "SUBMITTED": _DR_REVIEW,
        "PENDING_VERIFICATION": _DR_REVIEW,
        "PROCESSING": [
            Action("confirm_payment", "Confirm Payment", "PAID", requires=("orNumber",),
                   defaults={"remarks": "Payment confirmed and OR number recorded"}),
        ],
        "PAID": [
            Action("complete_registration", "Complete Registration", "REGISTERED",
                   defaults={"remarks": "Death registration completed and officially recorded"}),
        ],
        "REGISTERED": [
            Action("mark_for_pickup", "Mark for Pickup", "FOR_PICKUP",
                   defaults={"remarks": "Certificate prepared and ready for pickup"}),
        ],
        "FOR_PICKUP": [Action("mark_claimed", "Mark as Claimed", "CLAIMED")],
    },
    "burial_permit": {
        "SUBMITTED": [
            Action("verify", "Verify Documents", "FOR_PAYMENT"),
            Action("reject", "Reject", "REJECTED", requires=("remarks",)),
        ],
        "PENDING_VERIFICATION": [
            Action("verify", "Verify Documents", "FOR_PAYMENT"),
            Action("reject", "Reject", "REJECTED", requires=("remarks",)),
        ],
        "FOR_PAYMENT": [
            Action("confirm_payment", "Confirm Payment", "PAID", requires=("orNumber",)),
            Action("cancel", "Cancel", "CANCELLED"),
        ],
        "PAID": [Action("issue", "Issue Permit", "ISSUED")],
        "ISSUED": [Action("mark_claimed", "Mark as Claimed", "CLAIMED")],
    },
    "certificate_request": {
        "SUBMITTED": [
            Action("process", "Start Processing", "PROCESSING"),
            Action("reject", "Reject", "REJECTED", requires=("remarks",)),
        ],
        "PENDING_VERIFICATION": [
            Action("for_payment", "Verified, For Payment", "FOR_PAYMENT"),
            Action("process", "Start Processing", "PROCESSING"),
            Action("reject", "Reject", "REJECTED", requires=("remarks",)),
        ],
        "FOR_PAYMENT": [
            Action("confirm_payment", "Confirm Payment", "PAID", requires=("orNumber",)),
            Action("cancel", "Cancel", "CANCELLED"),
        ],
        "PAID": [Action("process", "Start Processing", "PROCESSING")],
        "PROCESSING": [Action("ready", "Ready for Pickup", "READY_FOR_PICKUP")],
        "READY_FOR_PICKUP": [Action("mark_claimed", "Mark as Claimed", "CLAIMED")],
    },
    "amenity_reservation": {
        "PENDING_REVIEW": [
            Action("review", "Approve for Payment", "AWAITING_PAYMENT"),
            Action("reject", "Reject", "REJECTED", requires=("rejectionReason",)),
        ],
        "AWAITING_PAYMENT": [
            Action("approve", "Approve Reservation", "APPROVED"),
            Action("reject", "Reject", "REJECTED", requires=("rejectionReason",)),
        ],
        "PAID": [
            Action("approve", "Approve Reservation", "APPROVED"),
            Action("reject", "Reject", "REJECTED", requires=("rejectionReason",)),
        ],
        "APPROVED": [
            Action("check_in", "Check In", "CHECKED_IN"),
            Action("cancel", "Cancel Reservation", "CANCELLED", requires=("cancellationReason",)),
        ],
        "CHECKED_IN": [Action("complete", "Complete", "COMPLETED")],
    },
}


def _derived(kind: str, status: str) -> List[Action]:
    lc = get_lifecycle(kind)
    if lc is None:
        return []
    out = []
    for target in sorted(lc.allowed_from(status), key=lambda t: (lc.rank(t) is None, lc.rank(t) or 0, t)):
        label = "Mark as " + target.replace("_", " ").title()
        out.append(Action(target.lower(), label, target, requires=lc.requirements.get(target, ())[:1]))
    return out


def available_actions(kind: Any, status: Any) -> List[Action]:
    lc = get_lifecycle(kind)
    if lc is None:
        return []
    s = normalize_status(status)
    table = ACTION_TABLES.get(lc.kind)
    if table is not None and s in table:
        return list(table[s])
    # states without a hand-written row still get buttons for their allowed moves
    return _derived(lc.kind, s)


def find_action(kind: Any, status: Any, key: str) -> Action | None:
    for action in available_actions(kind, status):
        if action.key == key:
            return action
    return None
