"""
Customer profile endpoints
==========================

GET  /customer/profile/{customer_id}  -- read a rider profile
POST /customer/update/{customer_id}   -- change name / phone number
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ride_service.api.dependencies import get_db
from ride_service.api.middleware import RATE_LIMIT, limiter
from ride_service.api.schemas import (
    CustomerProfile,
    CustomerResponse,
    CustomerUpdateRequest,
    ErrorResponse,
)
from ride_service.domain.errors import NotFoundError
from ride_service.infrastructure.repositories import CustomerRepository

router = APIRouter(prefix="/customer", tags=["customers"])

NOT_FOUND = {404: {"model": ErrorResponse, "description": "Customer not found"}}


@router.get(
    "/profile/{customer_id}",
    response_model=CustomerResponse,
    summary="Get a customer profile",
    responses=NOT_FOUND,
)
@limiter.limit(RATE_LIMIT)
async def get_profile(
    request: Request,
    customer_id: str,
    db: AsyncSession = Depends(get_db),
):
    customer = await CustomerRepository(db).get_by_id(customer_id)
    if not customer:
        raise NotFoundError("Customer not found")
    return CustomerResponse(customer=CustomerProfile.model_validate(customer))


@router.post(
    "/update/{customer_id}",
    response_model=CustomerResponse,
    summary="Update a customer profile",
    description="Omitted fields keep their current value.",
    responses=NOT_FOUND,
)
@limiter.limit(RATE_LIMIT)
async def update_profile(
    request: Request,
    customer_id: str,
    body: CustomerUpdateRequest,
    db: AsyncSession = Depends(get_db),
):
    repo = CustomerRepository(db)
    customer = await repo.get_by_id(customer_id)
    if not customer:
        raise NotFoundError("Customer not found")
    customer = await repo.update_profile(
        customer, name=body.name, phone_number=body.phone_number
    )
    return CustomerResponse(customer=CustomerProfile.model_validate(customer))
