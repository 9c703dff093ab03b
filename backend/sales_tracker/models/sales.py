from datetime import datetime
from sqlalchemy import Column, Integer, String, Float, Date, DateTime
from sales_tracker.database import Base

class SaleEntry(Base):
    """One employee's daily report"""
    __tablename__ = "sale_entries"

    id = Column(Integer, primary_key=True, index=True)
    date = Column(Date, index=True)
    employee_id = Column(String, index=True)

    # Inputs
    visitors = Column(Integer)
    transactions = Column(Integer)
    units = Column(Integer)
    revenue = Column(Float)
    hours_worked = Column(Float)

    # Derived ratios, recomputed on every write
    conversion = Column(Float)
    units_per_transaction = Column(Float)  # APO
    average_price = Column(Float)  # PMV
    average_ticket = Column(Float)
    productivity = Column(Float)

    created_at = Column(DateTime, default=datetime.utcnow)
    synced_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_record(self) -> dict:
        """Plain record consumed by the calculation core"""
        return {
            "id": self.id,
            "date": self.date,
            "employee_id": self.employee_id,
            "visitors": self.visitors,
            "transactions": self.transactions,
            "units": self.units,
            "revenue": self.revenue,
            "hours_worked": self.hours_worked,
            "conversion": self.conversion,
            "units_per_transaction": self.units_per_transaction,
            "average_price": self.average_price,
            "average_ticket": self.average_ticket,
            "productivity": self.productivity,
        }

    def __repr__(self):
        return f"<SaleEntry {self.date} {self.employee_id}: {self.revenue}>"
