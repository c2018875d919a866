from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from . import reports
from .db import get_db
from .models import Identity, Role
from .security import require_roles

router = APIRouter()


@router.get("/stats")
def stats(db: Session = Depends(get_db), _: Identity = Depends(require_roles(Role.ADMIN))):
    return reports.dashboard_stats(db)


@router.get("/requests-per-day")
def requests_per_day(days: int = Query(default=30, ge=1, le=365), db: Session = Depends(get_db),
                     _: Identity = Depends(require_roles(Role.ADMIN))):
    return reports.requests_per_day(db, days)


@router.get("/technician-performance")
def technician_performance(db: Session = Depends(get_db), _: Identity = Depends(require_roles(Role.ADMIN))):
    return reports.technician_performance(db)
