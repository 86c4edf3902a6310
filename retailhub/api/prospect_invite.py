"""
Public endpoint behind the personalised registration page for prospects.
"""
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from retailhub.api.errors import raise_for_result
from retailhub.db.database import get_db
from retailhub.services.prospect_invite_service import ProspectInviteService

router = APIRouter(prefix="/prospect-invite", tags=["commercial"])


@router.get("")
def resolve_prospect_invite(code: Optional[str] = None, db: Session = Depends(get_db)):
    return raise_for_result(ProspectInviteService(db).resolve(code))
