# barberbook/routers/barbers_routes.py

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlmodel import Session, select

from barberbook.auth import get_current_user
from barberbook.db import get_session
from barberbook.deps import require_barbershop, require_role
from barberbook.models import ScheduleBlock as ScheduleBlockModel, User
from barberbook.schemas import BlockCreate, BlockRecord, RecurrenceType

router = APIRouter(
    prefix="/barbers",
    tags=["barbers"],
)


@router.get("")
def list_barbers(
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    barbershop_id = require_barbershop(current_user)
    barbers = session.exec(
        select(User)
        .where(User.barbershop_id == barbershop_id)
        .where(User.role == "barber")
        .where(User.is_active == True)  # noqa: E712
        .order_by(User.full_name)
    ).all()
    return [{"id": b.id, "full_name": b.full_name, "email": b.email} for b in barbers]


@router.put("/me/blocks", response_model=BlockRecord, status_code=201)
def create_block(
    block: BlockCreate,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "barber", "admin")
    barbershop_id = require_barbershop(current_user)

    # 1) Who the block applies to
    if block.shop_wide:
        require_role(current_user, "admin")
        barber_id = None
    elif current_user["role"] == "barber":
        barber_id = current_user["id"]
    else:
        raise HTTPException(status_code=422, detail="Admins can only create shop-wide blocks")

    # 2) Time range
    if not block.is_full_day:
        if block.start_time is None or block.end_time is None:
            raise HTTPException(status_code=422, detail="start_time and end_time are required unless is_full_day")
        if block.start_time >= block.end_time:
            raise HTTPException(status_code=422, detail="start_time must be before end_time")

    # 3) Recurrence
    if block.recurrence_type == RecurrenceType.none:
        if block.block_date is None:
            raise HTTPException(status_code=422, detail="block_date is required for a one-off block")
    else:
        if not block.days_of_week:
            raise HTTPException(status_code=422, detail="days_of_week must contain at least one day")
        for day in block.days_of_week:
            if not (0 <= day <= 6):
                raise HTTPException(status_code=422, detail="days_of_week must be integers between 0 and 6")
        if len(block.days_of_week) != len(set(block.days_of_week)):
            raise HTTPException(status_code=422, detail="days_of_week cannot contain duplicates")
        if block.start_date and block.end_date and block.start_date > block.end_date:
            raise HTTPException(status_code=422, detail="start_date cannot be after end_date")

    db_block = ScheduleBlockModel(
        barbershop_id=barbershop_id,
        barber_id=barber_id,
        title=block.title,
        description=block.description,
        block_date=block.block_date,
        start_time=None if block.is_full_day else block.start_time,
        end_time=None if block.is_full_day else block.end_time,
        is_full_day=block.is_full_day,
        recurrence_type=block.recurrence_type.value,
        days_of_week=sorted(block.days_of_week),
        start_date=block.start_date,
        end_date=block.end_date,
    )
    session.add(db_block)
    session.commit()
    session.refresh(db_block)

    return db_block


@router.get("/me/blocks", response_model=list[BlockRecord])
def list_blocks(
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "barber", "admin")
    barbershop_id = require_barbershop(current_user)

    stmt = (
        select(ScheduleBlockModel)
        .where(ScheduleBlockModel.barbershop_id == barbershop_id)
        .where(ScheduleBlockModel.status == "active")
    )
    if current_user["role"] == "barber":
        stmt = stmt.where(
            (ScheduleBlockModel.barber_id == current_user["id"]) | (ScheduleBlockModel.barber_id == None)  # noqa: E711
        )
    return session.exec(stmt).all()


@router.delete("/me/blocks/{block_id}", status_code=204)
def delete_block(
    block_id: int,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "barber", "admin")
    target = session.get(ScheduleBlockModel, block_id)
    if target is None or target.barbershop_id != current_user["barbershop_id"]:
        raise HTTPException(status_code=404, detail="Block not found")
    if current_user["role"] == "barber" and target.barber_id != current_user["id"]:
        raise HTTPException(status_code=403, detail="Forbidden")

    # soft delete, the row stays for history
    target.status = "inactive"
    session.add(target)
    session.commit()
    return Response(status_code=204)
