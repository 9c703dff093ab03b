from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sales_tracker.config import DATABASE_URL, SQL_ECHO

if DATABASE_URL.startswith("sqlite"):
    engine = create_engine(DATABASE_URL, connect_args={"check_same_thread": False}, echo=SQL_ECHO)
else:
    engine = create_engine(DATABASE_URL, echo=SQL_ECHO)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
