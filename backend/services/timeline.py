# backend/services/timeline.py
from typing import Iterable, List, Optional

from schemas.order import TimelineStage

# Customer-facing delivery stages in display order; rank starts at 1
STAGES = (
    ("confirmed", "Order Confirmed", "Your order has been received and confirmed"),
    ("processing", "Processing", "Your order is being prepared for shipment"),
    ("shipped", "Shipped", "Your order has been shipped and is on the way"),
    ("in-transit", "In Transit", "Your package is out for delivery"),
    ("delivered", "Delivered", "Your package has been successfully delivered"),
)
STAGE_RANK = {status: i + 1 for i, (status, _, _) in enumerate(STAGES)}


def status_rank(status: Optional[str]) -> int:
    # Unknown statuses rank 0: nothing completed, nothing current
    return STAGE_RANK.get((status or "").lower(), 0)


def progress_percent(status: Optional[str]) -> int:
    return round(status_rank(status) / len(STAGES) * 100)


def _latest_entry(entries: List, status: str):
    matching = [e for e in entries if (e.status or "").lower() == status]
    if not matching:
        return None
    return max(matching, key=lambda e: (e.created_at is not None, e.created_at or 0, e.id or 0))


def build_timeline(current_status: Optional[str], entries: Iterable) -> List[TimelineStage]:
    """Project tracking entries onto the fixed stage list.

    ``entries`` are tracking rows (or anything with ``status``, ``created_at``,
    ``location`` and ``id``). Entries whose status is not a stage are left out.
    """
    entries = list(entries)
    current = status_rank(current_status)
    stages = []
    for status, label, description in STAGES:
        rank = STAGE_RANK[status]
        entry = _latest_entry(entries, status)
        stages.append(TimelineStage(
            id=status,
            status=status,
            label=label,
            description=description,
            rank=rank,
            completed=rank < current,
            current=rank == current,
            timestamp=entry.created_at if entry else None,
            location=entry.location if entry else None,
        ))
    return stages
