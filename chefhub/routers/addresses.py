from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from .. import schemas
from ..core.envelope import ok
from ..deps import get_current_user, get_db
from ..errors import NotFound
from ..models import User, UserAddress

router = APIRouter(prefix="/addresses")


def _owned_address(db: Session, user: User, address_id: int) -> UserAddress:
    address = db.scalar(
        select(UserAddress).where(UserAddress.id == address_id, UserAddress.user_id == user.id)
    )
    if address is None:
        raise NotFound("Address not found")
    return address


def _out(address: UserAddress) -> dict:
    return schemas.AddressOut.model_validate(address).model_dump(mode="json")


@router.get("")
def list_addresses(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    addresses = db.scalars(
        select(UserAddress).where(UserAddress.user_id == user.id).order_by(UserAddress.id.desc())
    ).all()
    return ok(data=[_out(a) for a in addresses])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_address(
    payload: schemas.AddressCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    address = UserAddress(user_id=user.id, **payload.model_dump())
    db.add(address)
    db.commit()
    db.refresh(address)
    return ok(data=_out(address), message="Address added successfully")


@router.get("/{address_id}")
def get_address(address_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return ok(data=_out(_owned_address(db, user, address_id)))


@router.put("/{address_id}")
def update_address(
    address_id: int,
    payload: schemas.AddressUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    address = _owned_address(db, user, address_id)
    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(address, key, value)
    db.commit()
    db.refresh(address)
    return ok(data=_out(address), message="Address updated successfully")


@router.delete("/{address_id}")
def delete_address(address_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    db.delete(_owned_address(db, user, address_id))
    db.commit()
    return ok(message="Address deleted successfully")
