from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

CounterName = Literal["receipt", "invoice", "enquiry", "member"]


class CounterValueOut(BaseModel):
    key: str
    value: int


class AllocatedNumberOut(BaseModel):
    counter: CounterName
    number: str
