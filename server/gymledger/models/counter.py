from __future__ import annotations

from sqlalchemy import Column, Integer, String

from gymledger.core.db import Base


class Counter(Base):
    __tablename__ = "counters"

    key = Column(String(50), primary_key=True)
    value = Column(Integer, nullable=False, default=0)
