#!/usr/bin/env python
"""Drop and recreate all tables"""
from sales_tracker.database import engine, Base
from sales_tracker.models.sales import SaleEntry
from sales_tracker.models.user import User

if __name__ == "__main__":
    print("Dropping existing tables...")
    Base.metadata.drop_all(bind=engine)

    print("Creating tables...")
    Base.metadata.create_all(bind=engine)

    print("Database reset")
