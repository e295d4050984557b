import uuid
from decimal import Decimal

import structlog
from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from driverhire.database import get_db
from driverhire.dependencies import get_current_admin, get_current_customer, get_current_user
from driverhire.errors import InvalidInput
from driverhire.models.enums import PaymentKind, PaymentMethod, PaymentStatus
from driverhire.models.user import User
from driverhire.schemas.payment import (
    PaymentHistoryResponse,
    PaymentResponse,
    PaymentSubmitResponse,
    PaymentSummary,
    PaymentVerifyRequest,
    PaymentVerifyResponse,
    PendingPaymentListResponse,
    PendingPaymentResponse,
)
from driverhire.services import payments as payment_service
from driverhire.services.notifications import Notifier, get_notifier
from driverhire.services.storage import load_payment_proof, proof_url, upload_payment_proof
from driverhire.utils.rate_limit import LIST_RATE_LIMIT, PAYMENT_RATE_LIMIT, limiter

logger = structlog.get_logger()
router = APIRouter()


@router.post("", response_model=PaymentSubmitResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(PAYMENT_RATE_LIMIT)
async def submit_payment(
    request: Request,
    booking_id: uuid.UUID = Form(...),
    amount: Decimal = Form(..., gt=0, max_digits=14, decimal_places=2),
    kind: PaymentKind = Form(...),
    method: PaymentMethod = Form(...),
    proof: UploadFile | None = File(None),
    customer: User = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Pay towards a booking. Cash is verified immediately; other methods need a proof upload.

    The proof is only put in the bucket once the payment has been accepted.
    """
    payment_proof = None
    if proof is not None and method != PaymentMethod.CASH:
        try:
            payment_proof = await load_payment_proof(proof)
        except ValueError as exc:
            raise InvalidInput(str(exc))

    payment, payment_status = await payment_service.submit_payment(
        db,
        booking_id,
        customer,
        amount,
        kind,
        method,
        notifier,
        proof_ref=payment_proof.key if payment_proof else None,
    )
    if payment_proof is not None:
        await upload_payment_proof(payment_proof)
    return PaymentSubmitResponse(
        payment=PaymentResponse.model_validate(payment),
        booking_payment_status=payment_status,
    )


@router.get("/admin/pending", response_model=PendingPaymentListResponse)
@limiter.limit(LIST_RATE_LIMIT)
async def list_pending_payments(
    request: Request,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0, le=10000),
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    """Payments awaiting verification, oldest first (admin only)."""
    rows, total = await payment_service.list_pending_payments(db, limit=limit, offset=offset)
    items = []
    for payment, code in rows:
        items.append(
            PendingPaymentResponse(
                **PaymentResponse.model_validate(payment).model_dump(),
                booking_code=code,
                proof_url=await proof_url(payment.proof_ref),
            )
        )
    return PendingPaymentListResponse(items=items, total=total, limit=limit, offset=offset)


@router.get("/booking/{booking_id}", response_model=PaymentHistoryResponse)
@limiter.limit(LIST_RATE_LIMIT)
async def booking_payment_history(
    request: Request,
    booking_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """All payments of a booking with a summary of what is settled."""
    payments, summary = await payment_service.payment_history(db, booking_id, user)
    return PaymentHistoryResponse(
        payments=[PaymentResponse.model_validate(p) for p in payments],
        summary=PaymentSummary(
            total_price=summary.total_price,
            total_paid=summary.total_paid,
            remaining=summary.remaining,
            payment_status=summary.payment_status,
        ),
    )


@router.patch("/{payment_id}/verify", response_model=PaymentVerifyResponse)
@limiter.limit(PAYMENT_RATE_LIMIT)
async def verify_payment(
    request: Request,
    payment_id: uuid.UUID,
    body: PaymentVerifyRequest,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Verify or reject a pending payment (admin only)."""
    payment, payment_status = await payment_service.verify_payment(
        db,
        payment_id,
        admin,
        PaymentStatus(body.decision),
        notifier,
        notes=body.notes,
    )
    return PaymentVerifyResponse(
        payment=PaymentResponse.model_validate(payment),
        booking_payment_status=payment_status,
    )
