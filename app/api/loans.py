import logging
from datetime import datetime
from typing import List, Optional

import jsonpatch
from fastapi import APIRouter, Body, Depends, HTTPException, Query
from fastapi.encoders import jsonable_encoder
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.api.deps import CurrentUser, get_current_user, require_admin
from app.core.database import get_db
from app.models import models
from app.schemas import schemas

logger = logging.getLogger("library.loans")

router = APIRouter(prefix="/api/UserController", tags=["loans"])

PATCHABLE = ("book_id", "user_email", "days", "issued_date", "due_date", "status")


def _field_defaults():
    # what a "remove" op leaves behind: the value a new request starts with
    now = datetime.now()
    return {"book_id": 0, "user_email": "", "days": 0,
            "issued_date": now, "due_date": now, "status": models.PENDING}


def apply_loan_patch(loan: models.IssueBook, operations: List[schemas.PatchOperation]) -> models.IssueBook:
    """Apply an RFC 6902 patch to the patchable fields of ``loan``.

    Raises ValueError when the patch cannot be applied or leaves a field with
    a value of the wrong type; ``loan`` is untouched in that case.
    """
    doc = jsonable_encoder({k: getattr(loan, k) for k in PATCHABLE})
    ops = [op.model_dump(by_alias=True, exclude_unset=True) for op in operations]
    for op in ops:
        if op["op"] in ("add", "replace", "test"):
            op.setdefault("value", None)
    try:
        patched = jsonpatch.apply_patch(doc, ops)
    except (jsonpatch.JsonPatchException, jsonpatch.JsonPointerException) as e:
        raise ValueError(str(e))

    defaults = _field_defaults()
    for key in PATCHABLE:
        patched.setdefault(key, defaults[key])
    try:
        values = schemas.LoanPatchable(**patched)
    except ValidationError as e:
        raise ValueError("; ".join(f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors()))

    for key, value in values.model_dump().items():
        setattr(loan, key, value)
    return loan


@router.post("", response_model=schemas.LoanOut)
def request_loan(loan_in: schemas.LoanRequest,
                 db: Session = Depends(get_db),
                 current: CurrentUser = Depends(get_current_user)):
    book = db.get(models.Book, loan_in.book_id)
    if not book:
        raise HTTPException(status_code=404, detail=f"Book with Id = '{loan_in.book_id}' not found.")
    now = datetime.now()
    # due_date starts equal to issued_date; days is not applied to it
    loan = models.IssueBook(book_id=book.id, user_email=current.identity, days=loan_in.days,
                            issued_date=now, due_date=now, status=models.PENDING)
    db.add(loan)
    db.commit()
    db.refresh(loan)
    logger.info(f"{current.identity} requested book {book.id} loan {loan.id}")
    return loan


@router.get("", response_model=List[schemas.LoanOut])
def list_pending_loans(db: Session = Depends(get_db), admin: CurrentUser = Depends(require_admin)):
    return (db.query(models.IssueBook)
            .filter(models.IssueBook.status == models.PENDING)
            .order_by(models.IssueBook.id)
            .all())


@router.get("/mine", response_model=List[schemas.LoanOut])
def list_my_loans(db: Session = Depends(get_db), current: CurrentUser = Depends(get_current_user)):
    return (db.query(models.IssueBook)
            .filter(models.IssueBook.user_email == current.identity)
            .order_by(models.IssueBook.id)
            .all())


@router.patch("/status/{loan_id}", response_model=schemas.LoanOut)
def approve_loan(loan_id: int,
                 operations: List[schemas.PatchOperation] = Body(...),
                 reqid: Optional[int] = Query(None),
                 db: Session = Depends(get_db),
                 admin: CurrentUser = Depends(require_admin)):
    # reqid names the loan when given, the path id is the fallback
    target = reqid if reqid is not None else loan_id
    loan = db.get(models.IssueBook, target)
    if not loan:
        raise HTTPException(status_code=404, detail=f"Loan request with Id = '{target}' not found.")
    try:
        apply_loan_patch(loan, operations)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    db.refresh(loan)
    logger.info(f"Loan {target} set to {loan.status} by {admin.identity}")
    return loan
