import logging
import secrets
import string
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from sqlalchemy.orm import Session
from sales_tracker.config import DEBUG, CORS_ORIGINS, LOG_LEVEL, VERSION
from sales_tracker.database import engine, Base, SessionLocal
from sales_tracker.routes import sales, health, auth
from sales_tracker.utils.rate_limiter import api_limiter
# Imported so the tables are registered before create_all
from sales_tracker.models.sales import SaleEntry
from sales_tracker.models.user import User

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=engine)

def _random_password(length: int = 16) -> str:
    """Random password with at least one letter and one digit"""
    alphabet = string.ascii_letters + string.digits
    while True:
        pw = ''.join(secrets.choice(alphabet) for _ in range(length))
        if any(c.isalpha() for c in pw) and any(c.isdigit() for c in pw):
            return pw

def _create_default_admin():
    db: Session = SessionLocal()
    try:
        admin_exists = db.query(User).filter(User.role == 'admin').first()
        if not admin_exists:
            init_pw = _random_password()
            default = User(
                username='admin',
                password_hash=auth.hash_password(init_pw),
                display_name='Administrador',
                employee_id=None,
                role='admin',
                is_active=True
            )
            db.add(default)
            db.commit()
            logger.warning("Initial admin account created: username=admin password=%s (change it)", init_pw)
    except Exception:
        logger.exception("Could not create default admin")
        db.rollback()
    finally:
        db.close()

_create_default_admin()

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "img-src 'self' data:; "
            "frame-ancestors 'none';"
        )
        if not DEBUG:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


# Per-IP limit on the whole API
class APIRateLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        if request.url.path.startswith("/api/"):
            ip_address = request.client.host if request.client else "unknown"
            allowed, remaining = api_limiter.check(ip_address)
            if not allowed:
                return JSONResponse(
                    status_code=429,
                    content={"detail": f"Demasiadas solicitudes. Inténtalo de nuevo en {remaining} segundos"}
                )
        return await call_next(request)

# API docs only in DEBUG
app = FastAPI(
    title="Altonadock Sales Tracker",
    description="Daily sales KPIs per employee",
    version=VERSION,
    docs_url="/docs" if DEBUG else None,
    redoc_url="/redoc" if DEBUG else None,
    openapi_url="/openapi.json" if DEBUG else None,
)

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(APIRateLimitMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS if CORS_ORIGINS else ["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(sales.router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("sales_tracker.main:app", host="0.0.0.0", port=8000, reload=DEBUG)
