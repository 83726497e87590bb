# practice_scheduler/routers/payers.py
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..services.availability_service import AvailabilityService
from ..services.payer_service import PayerService

router = APIRouter(
    prefix="/payers",
    tags=["Payers"],
    responses={404: {"description": "Not found"}},
)


@router.get("/search", response_model=List[schemas.PayerWithStatus])
def search_payers(
    q: Optional[str] = Query(None, max_length=100),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db)
):
    """Payers matching `q`, bookable ones first."""
    return PayerService(db).search(q, limit)


@router.get("/{payer_id}/acceptance", response_model=schemas.PayerWithStatus)
def read_payer_acceptance(payer_id: int, db: Session = Depends(get_db)):
    return PayerService(db).get_acceptance(payer_id)


@router.get("/{payer_id}/available-providers", response_model=List[schemas.ProviderSlots])
def read_available_providers(
    payer_id: int,
    date: date,
    duration: Optional[int] = Query(None, gt=0),
    db: Session = Depends(get_db)
):
    return AvailabilityService(db).get_available_providers(payer_id, date, duration)


@router.get("/{payer_id}/merged-availability", response_model=schemas.AvailabilityResult)
def read_merged_availability(
    payer_id: int,
    start_date: date,
    end_date: date,
    duration: Optional[int] = Query(None, gt=0),
    db: Session = Depends(get_db)
):
    """Slots across every provider in network with the payer, in time order."""
    return AvailabilityService(db).get_merged_availability(payer_id, start_date, end_date, duration)
