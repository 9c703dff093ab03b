import logging
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from pydantic import BaseModel, field_validator
from passlib.context import CryptContext
from sales_tracker.config import EMPLOYEES
from sales_tracker.database import get_db
from sales_tracker.models.user import User
from sales_tracker.utils.rate_limiter import login_limiter
from sales_tracker.utils.jwt_auth import create_access_token, get_current_user, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

class UserLogin(BaseModel):
    username: str
    password: str

def _validate_password_strength(password: str) -> str:
    if len(password) < 8:
        raise ValueError("La contraseña debe tener al menos 8 caracteres")
    if not any(c.isdigit() for c in password):
        raise ValueError("La contraseña debe contener al menos un número")
    if not any(c.isalpha() for c in password):
        raise ValueError("La contraseña debe contener al menos una letra")
    return password

class UserChangePassword(BaseModel):
    old_password: str
    new_password: str

    @field_validator('new_password')
    @classmethod
    def validate_new_password(cls, v):
        return _validate_password_strength(v)

class UserCreate(BaseModel):
    username: str
    password: str
    display_name: str
    employee_id: Optional[str] = None
    role: str = "user"  # 'admin' or 'user'

    @field_validator('password')
    @classmethod
    def validate_password(cls, v):
        return _validate_password_strength(v)

    @field_validator('role')
    @classmethod
    def validate_role(cls, v):
        allowed_roles = {'admin', 'user'}
        if v not in allowed_roles:
            raise ValueError(f"role must be one of {allowed_roles}")
        return v

def hash_password(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)

def _user_payload(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "display_name": user.display_name,
        "employee_id": user.employee_id,
        "role": user.role,
        "is_active": user.is_active,
    }

@router.post("/login")
async def login(request: Request, data: UserLogin, db: Session = Depends(get_db)):
    """User login"""
    ip_address = request.client.host if request.client else "unknown"

    # Brute-force protection per IP
    allowed, remaining = login_limiter.check(ip_address)
    if not allowed:
        logger.warning("Login rate limit exceeded for %s (%s)", data.username, ip_address)
        raise HTTPException(
            status_code=429,
            detail=f"Demasiados intentos de inicio de sesión. Inténtalo de nuevo en {remaining} segundos"
        )

    user = db.query(User).filter(User.username == data.username).first()

    if not user or not verify_password(data.password, user.password_hash):
        logger.warning("Login failure for %s (%s): invalid credentials", data.username, ip_address)
        raise HTTPException(status_code=401, detail="Usuario o contraseña incorrectos")

    if not user.is_active:
        logger.warning("Login failure for %s (%s): user inactive", data.username, ip_address)
        raise HTTPException(status_code=403, detail="Este usuario no está activo")

    logger.info("Login success for %s (%s)", data.username, ip_address)
    access_token = create_access_token(user)

    return {
        "success": True,
        "access_token": access_token,
        "token_type": "bearer",
        **_user_payload(user),
    }

@router.post("/logout")
async def logout():
    """Tokens are stateless, the client just drops it"""
    return {"success": True, "message": "Sesión cerrada"}

@router.get("/me")
async def me(current_user: User = Depends(get_current_user)):
    return _user_payload(current_user)

@router.post("/change-password")
async def change_password(data: UserChangePassword, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not verify_password(data.old_password, current_user.password_hash):
        raise HTTPException(status_code=401, detail="La contraseña actual no es correcta")

    current_user.password_hash = hash_password(data.new_password)
    current_user.updated_at = datetime.utcnow()
    db.commit()

    return {"success": True, "message": "Contraseña actualizada"}

@router.post("/admin/create-user")
async def create_user(data: UserCreate, current_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    """Create a user (admin only)"""
    existing = db.query(User).filter(User.username == data.username).first()
    if existing:
        raise HTTPException(status_code=400, detail="Este nombre de usuario ya existe")

    if data.employee_id and data.employee_id not in EMPLOYEES:
        raise HTTPException(status_code=400, detail=f"Empleada desconocida: {data.employee_id}")

    new_user = User(
        username=data.username,
        password_hash=hash_password(data.password),
        display_name=data.display_name,
        employee_id=data.employee_id,
        role=data.role,
        is_active=True
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)
    logger.info("User %s created by %s", data.username, current_user.username)

    return {
        "success": True,
        "message": f"Usuario '{data.username}' creado",
        "user_id": new_user.id
    }

@router.get("/admin/users")
async def list_users(current_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    """List users (admin only)"""
    users = db.query(User).order_by(User.username).all()
    return [
        {**_user_payload(u), "created_at": u.created_at.isoformat()}
        for u in users
    ]

@router.delete("/admin/users/{username}")
async def delete_user(username: str, current_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    """Delete a user (admin only)"""
    user = db.query(User).filter(User.username == username).first()
    if not user:
        raise HTTPException(status_code=404, detail="Usuario no encontrado")

    if user.id == current_user.id:
        raise HTTPException(status_code=400, detail="No puedes eliminar tu propio usuario")

    db.delete(user)
    db.commit()
    logger.info("User %s deleted by %s", username, current_user.username)

    return {
        "success": True,
        "message": f"Usuario '{username}' eliminado"
    }
