import datetime as dt
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

class SaleEntryCreate(BaseModel):
    date: dt.date
    employee_id: str = Field(..., min_length=1, max_length=64)
    visitors: int
    transactions: int
    units: int
    revenue: float = Field(..., ge=0)
    hours_worked: float

class SaleEntryUpdate(BaseModel):
    date: Optional[dt.date] = None
    employee_id: Optional[str] = Field(default=None, min_length=1, max_length=64)
    visitors: Optional[int] = None
    transactions: Optional[int] = None
    units: Optional[int] = None
    revenue: Optional[float] = Field(default=None, ge=0)
    hours_worked: Optional[float] = None

class SaleEntryRead(SaleEntryCreate):
    id: int
    conversion: float
    units_per_transaction: float
    average_price: float
    average_ticket: float
    productivity: float
    created_at: dt.datetime
    synced_at: Optional[dt.datetime] = None

    model_config = ConfigDict(from_attributes=True)
