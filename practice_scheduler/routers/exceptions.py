# practice_scheduler/routers/exceptions.py
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..services.exception_service import ExceptionService

router = APIRouter(
    prefix="/exceptions",
    tags=["Provider Schedule"],
    responses={404: {"description": "Not found"}},
)


@router.delete("/{exception_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_exception(exception_id: int, db: Session = Depends(get_db)):
    ExceptionService(db).delete_exception(exception_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
