# barberbook/routers/users_routes.py

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from barberbook.db import get_session
from barberbook.models import Barbershop, User
from barberbook.schemas import UserCreate, UserPublic, UserRole
from barberbook.auth import get_current_user, hash_password

router = APIRouter(
    tags=["users"],
)


@router.get("/me", response_model=UserPublic)
def me(current_user: dict = Depends(get_current_user)):
    return {
        "id": current_user["id"],
        "email": current_user["email"],
        "role": current_user["role"],
        "barbershop_id": current_user["barbershop_id"],
    }


@router.post("/users", status_code=201, response_model=UserPublic)
def create_user(
    user: UserCreate,
    session: Session = Depends(get_session),
):
    # 1) Check if email already exists
    existing = session.exec(
        select(User).where(User.email == user.email)
    ).first()
    if existing is not None:
        raise HTTPException(status_code=409, detail="Email already registered")

    # 2) Barbers and clients join an existing barbershop
    if user.barbershop_id is not None and session.get(Barbershop, user.barbershop_id) is None:
        raise HTTPException(status_code=404, detail="Barbershop Not Found")

    # 3) Admins only claim a barbershop nobody runs yet
    if user.role == UserRole.admin and user.barbershop_id is not None:
        current_admin = session.exec(
            select(User)
            .where(User.barbershop_id == user.barbershop_id)
            .where(User.role == "admin")
        ).first()
        if current_admin is not None:
            raise HTTPException(status_code=403, detail="Barbershop already has an admin")

    # 4) Create user in DB
    db_user = User(
        email=user.email,
        password_hash=hash_password(user.password),
        role=user.role.value,
        full_name=user.full_name,
        barbershop_id=user.barbershop_id,
    )

    session.add(db_user)
    session.commit()
    session.refresh(db_user)  # fills db_user.id

    # 5) Return public user
    return {
        "id": db_user.id,
        "email": db_user.email,
        "role": db_user.role,
        "barbershop_id": db_user.barbershop_id,
    }
