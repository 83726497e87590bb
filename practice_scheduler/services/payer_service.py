# practice_scheduler/services/payer_service.py
# Payer acceptance: credentialing state + dates -> active / future / not-accepted.
from datetime import date
from typing import Callable, Iterable, List, Optional, Union

import structlog
from sqlalchemy.orm import Session

from .. import crud, models, schemas
from ..errors import NotFoundError
from ..schemas import AcceptanceStatus

logger = structlog.get_logger(__name__)

APPROVED = "Approved"
IN_FLIGHT_STATUSES = {"Waiting on them", "In progress"}

SUPERVISION_DISCLOSURE = (
    "Visits are provided by a resident physician under the supervision of an attending physician, "
    "who is the billing provider."
)

NOT_ACCEPTED_MESSAGES = {
    "X Denied or perm. blocked": "{name} has denied our application, so we cannot accept it.",
    "Blocked": "We are currently unable to accept {name}.",
    "On pause": "Credentialing with {name} is on hold, so we cannot accept it right now.",
    "Not started": "We have not started credentialing with {name} yet.",
}
NOT_ACCEPTED_FALLBACK = "We do not currently accept {name}."


def classify_payer_acceptance(payer: Union[schemas.PayerRecord, models.Payer], today: Optional[date] = None) -> schemas.PayerAcceptance:
    """First matching rule wins; see AcceptanceStatus for the three outcomes."""
    if not isinstance(payer, schemas.PayerRecord):
        payer = schemas.PayerRecord.model_validate(payer)
    today = today or date.today()
    status = payer.credentialing_status

    if status == APPROVED and payer.effective_date is not None and payer.effective_date <= today:
        message = f"{payer.name} is in network."
        if payer.requires_attending:
            message = f"{message} {SUPERVISION_DISCLOSURE}"
        return schemas.PayerAcceptance(status=AcceptanceStatus.active, message=message)

    if status == APPROVED and payer.effective_date is not None:
        return schemas.PayerAcceptance(
            status=AcceptanceStatus.future,
            message=f"We will be in network with {payer.name} starting {payer.effective_date.isoformat()}.",
        )

    if status in IN_FLIGHT_STATUSES and payer.projected_effective_date is not None and payer.projected_effective_date > today:
        return schemas.PayerAcceptance(
            status=AcceptanceStatus.future,
            message=f"We expect to accept {payer.name} starting around {payer.projected_effective_date.isoformat()}.",
        )

    if status in IN_FLIGHT_STATUSES:
        return schemas.PayerAcceptance(
            status=AcceptanceStatus.future,
            message=f"We are working on getting in network with {payer.name}.",
        )

    template = NOT_ACCEPTED_MESSAGES.get(status, NOT_ACCEPTED_FALLBACK)
    return schemas.PayerAcceptance(status=AcceptanceStatus.not_accepted, message=template.format(name=payer.name))


def with_status(payer: Union[schemas.PayerRecord, models.Payer], today: Optional[date] = None) -> schemas.PayerWithStatus:
    record = payer if isinstance(payer, schemas.PayerRecord) else schemas.PayerRecord.model_validate(payer)
    acceptance = classify_payer_acceptance(record, today)
    return schemas.PayerWithStatus(
        **record.model_dump(),
        acceptance_status=acceptance.status,
        status_message=acceptance.message,
    )


def sort_payers(payers: Iterable[schemas.PayerWithStatus]) -> List[schemas.PayerWithStatus]:
    """Bookable first: active, then future, then not-accepted; alphabetical within each group."""
    return sorted(payers, key=lambda p: (p.acceptance_status.sort_rank, p.name.lower()))


class PayerService:
    def __init__(self, db: Session, today: Optional[Callable[[], date]] = None):
        self.db = db
        self.today = today or date.today

    def search(self, query: Optional[str] = None, limit: int = 50) -> List[schemas.PayerWithStatus]:
        today = self.today()
        payers = crud.search_payers(self.db, query, limit)
        results = sort_payers(with_status(p, today) for p in payers)
        logger.debug("payers.search", query=query, results=len(results))
        return results

    def get_acceptance(self, payer_id: int) -> schemas.PayerWithStatus:
        payer = crud.get_payer(self.db, payer_id)
        if payer is None:
            raise NotFoundError("Payer", payer_id)
        return with_status(payer, self.today())
