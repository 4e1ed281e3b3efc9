from fastapi import APIRouter, Request
from starlette import status
from models.addresses import Address
from schemas.address_schemas import CreateAddressRequest, AddressResponse
from middleware.rate_limiter import limiter
from utils.deps import db_dependency, user_dependency
from utils.logger import get_logger
from utils.responses import success_response

logger = get_logger(__name__)


router = APIRouter(
    prefix="/addresses",
    tags=["addresses"]
)


def _serialize(address: Address) -> dict:
    return AddressResponse.model_validate(address).model_dump(mode="json", by_alias=True)


@router.get("", status_code=status.HTTP_200_OK)
@limiter.limit("30/minute")
async def list_addresses(request: Request, user: user_dependency, db: db_dependency):
    addresses = (
        db.query(Address)
        .filter(Address.user_id == user.get("user_id"))
        .order_by(Address.created_at.desc(), Address.id.desc())
        .all()
    )
    return success_response(data={"addresses": [_serialize(address) for address in addresses]})


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
async def add_address(request: Request, body: CreateAddressRequest, user: user_dependency, db: db_dependency):
    address = Address(user_id=user.get("user_id"), **body.model_dump())

    db.add(address)
    db.commit()
    db.refresh(address)

    logger.info(
        "Address added",
        extra={"user_id": user.get("user_id"), "address_id": address.id}
    )

    return success_response(data={"address": _serialize(address)}, message="Address added successfully")
