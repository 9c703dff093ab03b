from fastapi import APIRouter
from sales_tracker.config import VERSION

router = APIRouter(prefix="/api", tags=["health"])

@router.get("/health")
def health_check():
    return {"status": "ok", "version": VERSION}
