"""
Postcode lookup proxy for the Postcode.nl address API.
"""
from typing import Optional

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from retailhub.services import postcode_service

router = APIRouter(prefix="/postcode", tags=["postcode"])


@router.get("")
def lookup_postcode(
    postcode: Optional[str] = None,
    house_number: Optional[str] = Query(default=None, alias="houseNumber"),
    addition: Optional[str] = None,
):
    status_code, body = postcode_service.lookup_address(postcode, house_number, addition)
    return JSONResponse(status_code=status_code, content=body)


@router.post("")
def postcode_method_not_allowed():
    return JSONResponse(status_code=405, content={"error": "Method not allowed"})
