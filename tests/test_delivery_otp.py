"""
Delivery codes: issuance, verification, expiry and the attempt limit.
"""
from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import NOW
from models.notification import Notification, NotificationType
from models.order import OrderStatus
from services import delivery_otp, order_service
from utils.exceptions import (
    AuthorizationError, ExpiredError, ForbiddenError, InvalidCodeError,
    InvalidStateError, NotFoundError,
)
from utils.otp_manager import OTPManager, otp_manager


def assigned_order(db, customer, rider, price=2000):
    order = order_service.create_order(
        db, customer, {"address": "Pickup"}, {"address": "Dropoff"}, price=price, now=NOW,
    )
    return order_service.accept_order(db, rider, order.order_id, now=NOW)


def wrong_code(code):
    return "1" * len(code) if code != "1" * len(code) else "2" * len(code)


def test_generated_codes_are_numeric_and_sized():
    for length in (4, 5, 6):
        manager = OTPManager(length=length, expiry_minutes=15, max_attempts=5)
        code = manager.generate_otp()
        assert code.isdigit() and len(code) == length and code[0] != "0"
    with pytest.raises(ValueError):
        OTPManager(length=3, expiry_minutes=15, max_attempts=5)


def test_issue_moves_assigned_order_to_delivering(db, customer, rider):
    order = assigned_order(db, customer, rider)
    before = len(order.timeline)

    order, expires_at = delivery_otp.issue_otp(db, rider, order.order_id, now=NOW)

    assert order.status == OrderStatus.delivering
    assert len(order.timeline) == before + 1
    assert expires_at == NOW + timedelta(minutes=otp_manager.expiry_minutes)
    assert order.otp_code.isdigit() and 4 <= len(order.otp_code) <= 6
    assert order.otp_attempts == 0


def test_customer_is_notified_with_the_code(db, customer, rider):
    order = assigned_order(db, customer, rider)
    order, _ = delivery_otp.issue_otp(db, rider, order.order_id, now=NOW)

    note = db.query(Notification).filter(
        Notification.user_id == customer.user_id,
        Notification.notification_type == NotificationType.delivery_otp,
    ).one()
    assert order.otp_code in note.message


def test_issue_requires_assigned_rider_and_active_order(db, customer, rider, rider_b):
    order = order_service.create_order(db, customer, {"address": "P"}, {"address": "D"}, price=100, now=NOW)
    with pytest.raises(ForbiddenError):
        delivery_otp.issue_otp(db, rider, order.order_id, now=NOW)

    order_service.accept_order(db, rider, order.order_id, now=NOW)
    with pytest.raises(ForbiddenError):
        delivery_otp.issue_otp(db, rider_b, order.order_id, now=NOW)
    with pytest.raises(AuthorizationError):
        delivery_otp.issue_otp(db, customer, order.order_id, now=NOW)

    order_service.advance_order(db, rider, order.order_id, "cancel", now=NOW)
    with pytest.raises(InvalidStateError):
        delivery_otp.issue_otp(db, rider, order.order_id, now=NOW)


def test_reissue_while_delivering_replaces_the_code(db, customer, rider):
    order = assigned_order(db, customer, rider)
    order, _ = delivery_otp.issue_otp(db, rider, order.order_id, now=NOW)
    first_code = order.otp_code
    with pytest.raises(InvalidCodeError):
        delivery_otp.verify_otp(db, rider, order.order_id, wrong_code(first_code), now=NOW)

    order, _ = delivery_otp.issue_otp(db, rider, order.order_id, now=NOW + timedelta(minutes=1))
    assert order.status == OrderStatus.delivering
    assert order.otp_attempts == 0
    assert order.otp_expires_at == NOW + timedelta(minutes=1 + otp_manager.expiry_minutes)


def test_correct_code_delivers_and_freezes_financial(db, customer, rider):
    order = assigned_order(db, customer, rider)
    order, _ = delivery_otp.issue_otp(db, rider, order.order_id, now=NOW)

    order = delivery_otp.verify_otp(db, rider, order.order_id, order.otp_code, now=NOW + timedelta(minutes=3))

    assert order.status == OrderStatus.delivered
    assert order.otp_verified_at == NOW + timedelta(minutes=3)
    assert order.delivered_at == NOW + timedelta(minutes=3)
    assert order.otp_code is None
    assert order.gross_amount == Decimal("2000.00")
    assert order.commission_amount == Decimal("200.00")
    assert order.rider_net_amount == Decimal("1800.00")
    assert order.timeline[-1].status == OrderStatus.delivered


def test_code_cannot_be_used_twice(db, customer, rider):
    order = assigned_order(db, customer, rider)
    order, _ = delivery_otp.issue_otp(db, rider, order.order_id, now=NOW)
    code = order.otp_code
    delivery_otp.verify_otp(db, rider, order.order_id, code, now=NOW)

    with pytest.raises(InvalidStateError):
        delivery_otp.verify_otp(db, rider, order.order_id, code, now=NOW)


def test_expired_code_fails_even_if_correct(db, customer, rider):
    order = assigned_order(db, customer, rider)
    order, expires_at = delivery_otp.issue_otp(db, rider, order.order_id, now=NOW)

    with pytest.raises(ExpiredError):
        delivery_otp.verify_otp(db, rider, order.order_id, order.otp_code, now=expires_at + timedelta(seconds=1))

    order = order_service.get_order(db, order.order_id)
    assert order.status == OrderStatus.delivering
    assert order.gross_amount is None


def test_code_still_valid_at_exact_expiry(db, customer, rider):
    order = assigned_order(db, customer, rider)
    order, expires_at = delivery_otp.issue_otp(db, rider, order.order_id, now=NOW)
    order = delivery_otp.verify_otp(db, rider, order.order_id, order.otp_code, now=expires_at)
    assert order.status == OrderStatus.delivered


def test_verify_without_a_code(db, customer, rider):
    order = assigned_order(db, customer, rider)
    with pytest.raises(NotFoundError):
        delivery_otp.verify_otp(db, rider, order.order_id, "1234", now=NOW)


def test_wrong_code_counts_attempts_then_voids(db, customer, rider):
    order = assigned_order(db, customer, rider)
    order, _ = delivery_otp.issue_otp(db, rider, order.order_id, now=NOW)
    bad = wrong_code(order.otp_code)

    for attempt in range(1, otp_manager.max_attempts + 1):
        with pytest.raises(InvalidCodeError):
            delivery_otp.verify_otp(db, rider, order.order_id, bad, now=NOW)
        order = order_service.get_order(db, order.order_id)
        assert order.otp_attempts == attempt

    assert order.otp_code is None
    assert order.status == OrderStatus.delivering
    with pytest.raises(NotFoundError):
        delivery_otp.verify_otp(db, rider, order.order_id, bad, now=NOW)


def test_only_assigned_rider_can_verify(db, customer, rider, rider_b):
    order = assigned_order(db, customer, rider)
    order, _ = delivery_otp.issue_otp(db, rider, order.order_id, now=NOW)
    with pytest.raises(ForbiddenError):
        delivery_otp.verify_otp(db, rider_b, order.order_id, order.otp_code, now=NOW)


def test_codes_match_handles_non_ascii_input():
    assert OTPManager.codes_match(" 1234 ", "1234")
    assert not OTPManager.codes_match("１２３４", "1234")
    assert not OTPManager.codes_match("12é4", "1234")


def test_full_width_digits_count_as_a_wrong_attempt(db, customer, rider):
    order = assigned_order(db, customer, rider)
    order, _ = delivery_otp.issue_otp(db, rider, order.order_id, now=NOW)

    with pytest.raises(InvalidCodeError):
        delivery_otp.verify_otp(db, rider, order.order_id, "１２３４", now=NOW)

    order = order_service.get_order(db, order.order_id)
    db.refresh(order)
    assert order.otp_attempts == 1
    assert order.status == OrderStatus.delivering
