# Overview: Service-layer operations for the offer lifecycle; one transition table, enforced server-side.

"""
Offer Lifecycle Service

================================================================================
STATE MACHINE (the only source of truth for offer status changes):

    Draft     --send_for_review-->   In Review   (review request only)
    In Review --back_to_draft-->     Draft
    In Review --approve-->           Approved
    Approved  --back_to_review-->    In Review
    Approved  --send_to_customer-->  Sent
    Sent      --mark_won-->          Won
    Sent      --mark_lost-->         Lost
    Sent      --put_on_hold-->       Hold
    Hold      --mark_won-->          Won
    Hold      --mark_lost-->         Lost
    Won       --create_contract      (no status change)
    Lost      (terminal)

RULES:
1. Clients render buttons from available_actions(); the server re-checks every
   request against the same table.
2. send_for_review is not a plain status write. It happens only inside
   review_service.create_review_request, which also writes the reviews.
3. Moving to Won, Lost or Hold writes the status and nothing else.
================================================================================
"""

from __future__ import annotations

from flask import current_app

from ..constants import OFFER_STATUSES, OfferStatus
from ..extensions import db
from ..models import Offer
from .gateway import commit_or_rollback, get_row
from dealdesk.time_utils import to_utc_z, utcnow


class LifecycleError(ValueError):
    """
    Raised when an invalid lifecycle transition is attempted.

    This is a domain error: the offer is in a state where the requested
    move is not allowed.
    """
    pass


SEND_FOR_REVIEW = "send_for_review"
CREATE_CONTRACT = "create_contract"

# status -> ordered {action: next status}; None means the action does not move the offer
TRANSITIONS: dict[str, dict[str, str | None]] = {
    OfferStatus.DRAFT.value: {
        SEND_FOR_REVIEW: OfferStatus.IN_REVIEW.value,
    },
    OfferStatus.IN_REVIEW.value: {
        "back_to_draft": OfferStatus.DRAFT.value,
        "approve": OfferStatus.APPROVED.value,
    },
    OfferStatus.APPROVED.value: {
        "back_to_review": OfferStatus.IN_REVIEW.value,
        "send_to_customer": OfferStatus.SENT.value,
    },
    OfferStatus.SENT.value: {
        "mark_won": OfferStatus.WON.value,
        "mark_lost": OfferStatus.LOST.value,
        "put_on_hold": OfferStatus.HOLD.value,
    },
    OfferStatus.HOLD.value: {
        "mark_won": OfferStatus.WON.value,
        "mark_lost": OfferStatus.LOST.value,
    },
    OfferStatus.WON.value: {
        CREATE_CONTRACT: None,
    },
    OfferStatus.LOST.value: {},
}

# Actions that cannot be triggered through a plain status change
_WORKFLOW_ACTIONS = {SEND_FOR_REVIEW, CREATE_CONTRACT}


def validate_status(status: str) -> None:
    if status not in OFFER_STATUSES:
        raise LifecycleError(
            f"Invalid status '{status}'. Must be one of: {', '.join(OFFER_STATUSES)}"
        )


def available_actions(status: str) -> list[dict]:
    """
    Actions offered for an offer in ``status``, in display order.

    Each entry is {"action", "next_status"}; next_status is None for actions
    that open another workflow instead of moving the offer.
    """
    validate_status(status)
    return [
        {"action": action, "next_status": target}
        for action, target in TRANSITIONS[status].items()
    ]


def action_for(from_status: str, to_status: str) -> str | None:
    """Name of the plain-status action moving ``from_status`` to ``to_status``, if any."""
    for action, target in TRANSITIONS.get(from_status, {}).items():
        if target == to_status and action not in _WORKFLOW_ACTIONS:
            return action
    return None


def can_transition(from_status: str, to_status: str) -> bool:
    validate_status(from_status)
    validate_status(to_status)
    return action_for(from_status, to_status) is not None


def change_offer_status(offer_id: int, new_status: str, *, actor_id: int | None = None) -> Offer:
    """
    Persist a status change for an offer.

    Raises:
        NotFoundError: offer does not exist
        LifecycleError: unknown status, or the move is not in the table

    The returned offer carries the persisted status only; on failure nothing
    is written.
    """
    validate_status(new_status)
    offer = get_row(Offer, offer_id, label="Offer")

    if offer.status == new_status:
        raise LifecycleError(f"Offer is already {new_status}")

    if not can_transition(offer.status, new_status):
        if new_status == OfferStatus.IN_REVIEW.value and offer.status == OfferStatus.DRAFT.value:
            raise LifecycleError("Draft offers go to review through a review request")
        raise LifecycleError(
            f"Cannot move offer from {offer.status} to {new_status}"
        )

    previous = offer.status
    offer.status = new_status
    offer.updated_at = utcnow()
    commit_or_rollback()

    current_app.logger.info(
        "Offer %s status %s -> %s (by user %s)", offer.id, previous, new_status, actor_id
    )
    return offer


def apply_action(offer_id: int, action: str, *, actor_id: int | None = None) -> Offer:
    """Resolve an action name against the current status, then change status."""
    offer = get_row(Offer, offer_id, label="Offer")
    table = TRANSITIONS.get(offer.status, {})
    if action not in table:
        raise LifecycleError(f"Action '{action}' is not available for a {offer.status} offer")
    if action in _WORKFLOW_ACTIONS:
        raise LifecycleError(f"Action '{action}' has its own endpoint")
    return change_offer_status(offer_id, table[action], actor_id=actor_id)


def move_to_review(offer: Offer) -> None:
    """
    Put an offer into In Review as part of a larger unit of work.

    Used by review request creation (from Draft) and by resend (from any
    state). Does not commit.
    """
    offer.status = OfferStatus.IN_REVIEW.value
    offer.updated_at = utcnow()
    db.session.add(offer)


def status_timeline(offer: Offer) -> list[dict]:
    """
    Progress view: the forward path with the current step's timestamp.

    Only the current state's time is known (updated_at); earlier steps are
    flagged as done without a time.
    """
    path = [
        OfferStatus.DRAFT.value,
        OfferStatus.IN_REVIEW.value,
        OfferStatus.APPROVED.value,
        OfferStatus.SENT.value,
    ]
    if offer.status in (OfferStatus.WON.value, OfferStatus.LOST.value, OfferStatus.HOLD.value):
        path.append(offer.status)
    else:
        path.append(OfferStatus.WON.value)

    current_idx = path.index(offer.status) if offer.status in path else 0
    steps = []
    for idx, status in enumerate(path):
        steps.append({
            "status": status,
            "done": idx <= current_idx,
            "current": idx == current_idx,
            "at": to_utc_z(offer.updated_at) if idx == current_idx and offer.updated_at else None,
        })
    return steps
