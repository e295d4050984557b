"""Payment ledger.

A booking's ``payment_status`` is derived from the sum of its verified
payments and is only written here, inside the transaction of the payment
event that changed that sum, with the booking row locked.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from driverhire.config import settings
from driverhire.errors import (
    AlreadyDecided,
    BookingNotEligible,
    BookingNotFound,
    Forbidden,
    InsufficientAmount,
    InvalidInput,
    PaymentExceedsBalance,
    PaymentNotFound,
)
from driverhire.metrics import PAYMENT_DECISIONS, PAYMENTS_SUBMITTED
from driverhire.models.audit_log import AuditLog
from driverhire.models.booking import Booking
from driverhire.models.enums import (
    BookingPaymentStatus,
    BookingStatus,
    NotificationType,
    PaymentKind,
    PaymentMethod,
    PaymentStatus,
)
from driverhire.models.payment import Payment
from driverhire.models.user import User
from driverhire.services.bookings import booking_party, lock_booking
from driverhire.services.notifications import Notifier

logger = structlog.get_logger()

_CENTS = Decimal("0.01")


@dataclass
class PaymentSummaryData:
    total_price: Decimal
    total_paid: Decimal
    remaining: Decimal
    payment_status: BookingPaymentStatus


def derive_payment_status(total_price: Decimal, verified_total: Decimal) -> BookingPaymentStatus:
    if verified_total >= total_price:
        return BookingPaymentStatus.PAID
    if verified_total > 0:
        return BookingPaymentStatus.DP_PAID
    return BookingPaymentStatus.UNPAID


def outstanding_balance(total_price: Decimal, verified_total: Decimal) -> Decimal:
    return max(Decimal(total_price) - Decimal(verified_total), Decimal("0"))


def minimum_deposit(total_price: Decimal) -> Decimal:
    return (Decimal(total_price) * settings.DEPOSIT_MIN_RATIO).quantize(_CENTS, rounding=ROUND_HALF_UP)


async def verified_total(db: AsyncSession, booking_id: uuid.UUID) -> Decimal:
    result = await db.execute(
        select(func.coalesce(func.sum(Payment.amount), 0)).where(
            Payment.booking_id == booking_id,
            Payment.status == PaymentStatus.VERIFIED.value,
        )
    )
    return Decimal(str(result.scalar_one())).quantize(_CENTS)


async def _refresh_payment_status(db: AsyncSession, booking: Booking) -> BookingPaymentStatus:
    """Recompute the derived status from a fresh sum. The booking row must be locked."""
    paid = await verified_total(db, booking.id)
    status = derive_payment_status(Decimal(booking.total_price), paid)
    booking.payment_status = status.value
    await db.flush()
    return status


def _check_amount(kind: PaymentKind, amount: Decimal, total_price: Decimal, outstanding: Decimal) -> None:
    if kind == PaymentKind.DEPOSIT:
        required = minimum_deposit(total_price)
        if amount < required:
            raise InsufficientAmount(f"Deposit must be at least {required}")
    elif amount < outstanding:
        raise InsufficientAmount(
            f"A {kind.value} payment must cover the outstanding balance of {outstanding}"
        )
    if amount > outstanding:
        raise PaymentExceedsBalance(f"Outstanding balance is {outstanding}")


async def submit_payment(
    db: AsyncSession,
    booking_id: uuid.UUID,
    customer: User,
    amount: Decimal,
    kind: PaymentKind,
    method: PaymentMethod,
    notifier: Notifier,
    proof_ref: str | None = None,
) -> tuple[Payment, BookingPaymentStatus]:
    """Record a payment against the customer's booking.

    Cash is verified on the spot and the booking's payment status is
    recomputed against the balance as of this locked read. Transfer and
    e-wallet payments need a proof reference and wait for an admin.
    """
    kind = PaymentKind(kind)
    method = PaymentMethod(method)
    amount = Decimal(amount).quantize(_CENTS, rounding=ROUND_HALF_UP)
    if amount <= 0:
        raise InvalidInput("Amount must be positive")
    if method != PaymentMethod.CASH and not proof_ref:
        raise InvalidInput("Proof of payment is required for transfer and e-wallet payments")

    booking = await lock_booking(db, booking_id)
    if booking.customer_id != customer.id:
        raise BookingNotFound()
    if BookingStatus(booking.status) == BookingStatus.CANCELLED:
        raise BookingNotEligible("Cannot pay for a cancelled booking")

    total_price = Decimal(booking.total_price)
    outstanding = outstanding_balance(total_price, await verified_total(db, booking.id))
    if outstanding <= 0:
        raise BookingNotEligible("Booking is already fully paid")
    _check_amount(kind, amount, total_price, outstanding)

    auto_verified = method == PaymentMethod.CASH
    payment = Payment(
        booking_id=booking.id,
        amount=amount,
        kind=kind.value,
        method=method.value,
        proof_ref=proof_ref,
        status=(PaymentStatus.VERIFIED if auto_verified else PaymentStatus.PENDING).value,
        verified_at=datetime.now(timezone.utc) if auto_verified else None,
    )
    db.add(payment)
    await db.flush()

    if auto_verified:
        payment_status = await _refresh_payment_status(db, booking)
    else:
        payment_status = BookingPaymentStatus(booking.payment_status)

    PAYMENTS_SUBMITTED.labels(method=method.value).inc()
    logger.info(
        "payment_submitted",
        payment_id=str(payment.id),
        booking_id=str(booking.id),
        kind=kind.value,
        method=method.value,
        amount=str(amount),
        auto_verified=auto_verified,
        payment_status=payment_status.value,
    )

    await notifier.notify_user(
        db,
        booking.driver.user_id,
        NotificationType.PAYMENT_RECEIVED,
        "Payment received",
        f"{customer.full_name} paid {amount} ({kind.value}, {method.value}) for booking {booking.code}",
        {"booking_id": str(booking.id), "payment_id": str(payment.id)},
    )
    await notifier.notify_booking(
        db,
        booking.id,
        "payment_submitted",
        {"payment_id": str(payment.id), "payment_status": payment_status.value},
    )
    return payment, payment_status


async def verify_payment(
    db: AsyncSession,
    payment_id: uuid.UUID,
    admin: User,
    decision: PaymentStatus,
    notifier: Notifier,
    notes: str | None = None,
) -> tuple[Payment, BookingPaymentStatus]:
    """Decide a pending payment once. The payment and booking rows stay locked until commit."""
    decision = PaymentStatus(decision)
    if decision not in (PaymentStatus.VERIFIED, PaymentStatus.REJECTED):
        raise InvalidInput("Decision must be 'verified' or 'rejected'")

    result = await db.execute(
        select(Payment)
        .where(Payment.id == payment_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    payment = result.scalar_one_or_none()
    if payment is None:
        raise PaymentNotFound()
    if PaymentStatus(payment.status) != PaymentStatus.PENDING:
        raise AlreadyDecided()

    booking = await lock_booking(db, payment.booking_id)

    payment.status = decision.value
    payment.verified_by = admin.id
    payment.verified_at = datetime.now(timezone.utc)
    payment.notes = notes
    await db.flush()

    if decision == PaymentStatus.VERIFIED:
        payment_status = await _refresh_payment_status(db, booking)
    else:
        payment_status = BookingPaymentStatus(booking.payment_status)

    db.add(
        AuditLog(
            action=f"payment_{decision.value}",
            admin_user_id=admin.id,
            target_user_id=booking.customer_id,
            target_id=payment.id,
            detail=notes,
            metadata_json={
                "booking_id": str(booking.id),
                "amount": str(payment.amount),
                "payment_status": payment_status.value,
            },
        )
    )
    await db.flush()

    PAYMENT_DECISIONS.labels(decision=decision.value).inc()
    logger.info(
        "payment_decided",
        payment_id=str(payment.id),
        booking_id=str(booking.id),
        decision=decision.value,
        admin_id=str(admin.id),
        payment_status=payment_status.value,
    )

    if decision == PaymentStatus.VERIFIED:
        await notifier.notify_user(
            db,
            booking.customer_id,
            NotificationType.PAYMENT_VERIFIED,
            "Payment verified",
            f"Your payment of {payment.amount} for booking {booking.code} has been verified",
            {"booking_id": str(booking.id), "payment_id": str(payment.id)},
        )
    else:
        body = f"Your payment for booking {booking.code} was rejected."
        if notes:
            body = f"{body} {notes}"
        await notifier.notify_user(
            db,
            booking.customer_id,
            NotificationType.PAYMENT_REJECTED,
            "Payment rejected",
            body,
            {"booking_id": str(booking.id), "payment_id": str(payment.id)},
        )
    await notifier.notify_booking(
        db,
        booking.id,
        f"payment_{decision.value}",
        {"payment_id": str(payment.id), "payment_status": payment_status.value},
    )
    return payment, payment_status


async def payment_history(
    db: AsyncSession,
    booking_id: uuid.UUID,
    actor: User,
) -> tuple[list[Payment], PaymentSummaryData]:
    """All payments of a booking, newest first, with a summary over verified amounts."""
    result = await db.execute(
        select(Booking)
        .where(Booking.id == booking_id)
        .options(selectinload(Booking.driver), selectinload(Booking.payments))
        .execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if booking is None:
        raise BookingNotFound()
    if booking_party(booking, actor) is None:
        raise Forbidden("You do not have access to this booking")

    total_price = Decimal(booking.total_price)
    total_paid = sum(
        (Decimal(p.amount) for p in booking.payments if p.status == PaymentStatus.VERIFIED),
        Decimal("0"),
    ).quantize(_CENTS)
    summary = PaymentSummaryData(
        total_price=total_price,
        total_paid=total_paid,
        remaining=outstanding_balance(total_price, total_paid),
        payment_status=derive_payment_status(total_price, total_paid),
    )
    return list(booking.payments), summary


async def list_pending_payments(
    db: AsyncSession,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[tuple[Payment, str]], int]:
    """Verification queue for admins, oldest submission first."""
    result = await db.execute(
        select(Payment, Booking.code)
        .join(Booking, Booking.id == Payment.booking_id)
        .where(Payment.status == PaymentStatus.PENDING.value)
        .order_by(Payment.created_at.asc(), Payment.id)
        .offset(offset)
        .limit(limit)
    )
    total = await db.scalar(
        select(func.count(Payment.id)).where(Payment.status == PaymentStatus.PENDING.value)
    )
    return [(payment, code) for payment, code in result.all()], total or 0
