from fastapi import APIRouter, Depends, HTTPException

from ..services import build_service, transaction_service
from ..services.exceptions import NotFoundOrAccessDenied
from .deps import CallerIdentity, get_caller, require_writer
from .schemas import BuildTransactionIn, to_camel_payload

router = APIRouter(prefix="/api/transactions", tags=["transactions"])


@router.post("/build", status_code=201)
def create_build(payload: BuildTransactionIn, caller: CallerIdentity = Depends(require_writer)):
    result = build_service.create_build_transaction(
        payload.to_request(caller.company_id, caller.user_id)
    )
    body = result.to_dict()
    if not result.warning:
        body.pop("insufficient_items")
    return to_camel_payload(body)


@router.post("/build/check")
def check_build(payload: BuildTransactionIn, caller: CallerIdentity = Depends(get_caller)):
    return to_camel_payload(
        build_service.check_can_build(payload.to_request(caller.company_id, caller.user_id))
    )


@router.get("/{transaction_id}")
def read_transaction(transaction_id: str, caller: CallerIdentity = Depends(get_caller)):
    try:
        transaction = transaction_service.get_transaction(caller.company_id, transaction_id)
    except NotFoundOrAccessDenied:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return to_camel_payload(transaction)
