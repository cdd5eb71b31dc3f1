from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from marketplace.demo import seed_demo_catalog
from marketplace.persistence.db import get_session

router = APIRouter(tags=["demo"])


@router.post("/demo/seed")
def seed_demo(session: Session = Depends(get_session)):
    return seed_demo_catalog(session)
