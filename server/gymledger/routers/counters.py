from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from gymledger.core.db import get_db, serialized
from gymledger.schemas.counter import AllocatedNumberOut, CounterName, CounterValueOut
from gymledger.services import identity

router = APIRouter(prefix="/counters", tags=["counters"])

ALLOCATORS = {
    "receipt": identity.allocate_receipt_number,
    "invoice": identity.allocate_invoice_number,
    "enquiry": identity.allocate_enquiry_number,
    "member": identity.allocate_member_number,
}


@router.get("/{counter}", response_model=CounterValueOut)
def get_counter(counter: CounterName, db: Session = Depends(get_db)) -> CounterValueOut:
    key = f"{counter}_counter"
    with serialized(db):
        return CounterValueOut(key=key, value=identity.current_value(db, key))


@router.post("/{counter}/next", response_model=AllocatedNumberOut)
def allocate_number(counter: CounterName, db: Session = Depends(get_db)) -> AllocatedNumberOut:
    with serialized(db):
        number = ALLOCATORS[counter](db)
        db.commit()
    return AllocatedNumberOut(counter=counter, number=number)
