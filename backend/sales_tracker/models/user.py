from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sales_tracker.database import Base

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True)  # login id
    password_hash = Column(String)
    display_name = Column(String)
    employee_id = Column(String, nullable=True)  # roster member, empty for managers
    role = Column(String, default="user")  # 'admin' or 'user'
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
