from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from services import diagnostics
from api.tenant import get_escola_id

router = APIRouter(prefix="/horarios", tags=["Horarios"])

@router.get("/diagnostico")
async def shift_diagnostic(turno: str, db: Session = Depends(get_db), escola_id: int = Depends(get_escola_id)):
    """
    Demand vs. supply of teaching hours per subject for a shift.

    Read-only. `gap = supply - demand`; status is OK, SURPLUS or DEFICIT.
    """
    return diagnostics.compute_shift_diagnostic(db, escola_id, turno)
