from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

# Services an employee is currently responsible for
ACTIVE_JOB_STATUSES = ("claimed", "in_progress")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    hashed_password = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="customer")  # admin, employee, customer
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    employee = relationship("Employee", back_populates="user", uselist=False)
    customer = relationship("Customer", back_populates="user", uselist=False)


class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    phone = Column(String(50), nullable=True)
    average_rating = Column(Float, default=0, nullable=False)  # 0-5, recomputed from service ratings
    # Home base, used as distance origin when the app doesn't send a live position
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    # Payout rails
    cash_app_username = Column(String(100), nullable=True)  # e.g. $scooperjoe
    stripe_connect_account_id = Column(String(255), nullable=True)  # acct_...
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="employee")
    service_areas = relationship(
        "ServiceArea",
        back_populates="employee",
        cascade="all, delete-orphan",
        order_by="ServiceArea.id",
    )
    services = relationship("Service", back_populates="employee")
    payouts = relationship("Payout", back_populates="employee")


class ServiceArea(Base):
    """ZIP code + travel radius an employee is willing to cover"""

    __tablename__ = "service_areas"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    zip_code = Column(String(5), nullable=False, index=True)
    travel_distance = Column(Float, default=10, nullable=False)  # miles
    created_at = Column(DateTime, server_default=func.now())

    employee = relationship("Employee", back_populates="service_areas")


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    phone = Column(String(50), nullable=True)
    gate_code = Column(String(50), nullable=True)
    service_day = Column(String(10), nullable=True)  # Monday..Sunday, null = any day
    # Service address
    street = Column(String(500), nullable=True)
    city = Column(String(255), nullable=True)
    state = Column(String(2), nullable=True)
    zip_code = Column(String(5), nullable=True, index=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    stripe_customer_id = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="customer")
    services = relationship("Service", back_populates="customer")
    payments = relationship("Payment", back_populates="customer")


class Service(Base):
    """A scheduled cleanup visit (a 'job' from the employee's point of view)"""

    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=True, index=True)

    service_type = Column(String(50), default="weekly")  # weekly, bi_weekly, one_time
    # scheduled, claimed, in_progress, completed, cancelled, paused
    status = Column(String(20), default="scheduled", nullable=False, index=True)
    scheduled_date = Column(DateTime, nullable=False, index=True)  # UTC

    # Jobs stay locked until the morning unlock run
    is_locked = Column(Boolean, default=True, nullable=False)
    unlocked_at = Column(DateTime, nullable=True)

    claimed_at = Column(DateTime, nullable=True)
    arrival_deadline = Column(DateTime, nullable=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    # Employee side of the money
    potential_earnings = Column(Float, default=0, nullable=False)
    payment_status = Column(String(20), default="pending", nullable=False)  # pending, paid
    paid_at = Column(DateTime, nullable=True)
    payout_id = Column(Integer, ForeignKey("payouts.id"), nullable=True)

    rating = Column(Integer, nullable=True)  # 1-5, left by the customer
    feedback = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    customer = relationship("Customer", back_populates="services")
    employee = relationship("Employee", back_populates="services")
    payout = relationship("Payout", back_populates="services")


class Earning(Base):
    __tablename__ = "earnings"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    payout_id = Column(Integer, ForeignKey("payouts.id"), nullable=True)
    amount = Column(Float, nullable=False)
    status = Column(String(20), default="paid")  # pending, paid
    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class Payout(Base):
    """Payout of completed-service earnings to an employee"""

    __tablename__ = "payouts"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)

    amount = Column(Float, nullable=False)  # Gross: sum of service earnings
    fees = Column(Float, nullable=False, default=0)
    net_amount = Column(Float, nullable=False)
    currency = Column(String(10), default="USD")
    status = Column(String(20), default="pending")  # pending, processing, completed, failed

    payment_method = Column(String(20), nullable=False)  # stripe, cash_app
    is_same_day = Column(Boolean, default=False)
    service_ids = Column(JSON, default=list)
    service_count = Column(Integer, default=0)

    stripe_transfer_id = Column(String(255), nullable=True, index=True)
    reference_id = Column(String(255), nullable=True)  # Cash App / external reference
    failure_reason = Column(Text, nullable=True)

    requested_at = Column(DateTime, server_default=func.now())
    processed_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    employee = relationship("Employee", back_populates="payouts")
    services = relationship("Service", back_populates="payout")


class Payment(Base):
    """Customer charge collected through Stripe"""

    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=True)
    amount = Column(Float, nullable=False)
    currency = Column(String(10), default="USD")
    status = Column(String(20), default="pending")  # pending, paid, failed, refunded
    type = Column(String(20), default="subscription")  # subscription, one_time, tip
    payment_method = Column(String(20), default="stripe")
    stripe_payment_intent_id = Column(String(255), nullable=True, index=True)
    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    customer = relationship("Customer", back_populates="payments")


class ReconciliationReport(Base):
    __tablename__ = "reconciliation_reports"

    id = Column(Integer, primary_key=True, index=True)
    period_start = Column(DateTime, nullable=False)
    period_end = Column(DateTime, nullable=False)
    total_records = Column(Integer, default=0)
    matched_count = Column(Integer, default=0)
    mismatch_count = Column(Integer, default=0)
    missing_from_stripe_count = Column(Integer, default=0)
    missing_from_system_count = Column(Integer, default=0)
    discrepancy_count = Column(Integer, default=0)
    customer_payments_total = Column(Float, default=0)
    employee_payouts_total = Column(Float, default=0)
    net_revenue = Column(Float, default=0)
    internal_checks = Column(JSON, default=list)  # Payout/earnings, failed payments, unpaid services
    trigger = Column(String(20), default="cron")  # cron, manual
    created_at = Column(DateTime, server_default=func.now())

    items = relationship(
        "ReconciliationItem",
        back_populates="report",
        cascade="all, delete-orphan",
        order_by="ReconciliationItem.id",
    )


class ReconciliationItem(Base):
    __tablename__ = "reconciliation_items"

    id = Column(Integer, primary_key=True, index=True)
    report_id = Column(Integer, ForeignKey("reconciliation_reports.id"), nullable=False, index=True)
    record_type = Column(String(20), nullable=False)  # payment, payout, referral
    payment_id = Column(Integer, nullable=True)
    payout_id = Column(Integer, nullable=True)
    referral_id = Column(Integer, nullable=True)
    stripe_id = Column(String(255), nullable=True)
    system_amount = Column(Float, nullable=True)
    stripe_amount = Column(Float, nullable=True)
    # matched, amount_mismatch, missing_from_stripe, missing_from_system
    match_status = Column(String(30), nullable=False)
    notes = Column(Text, nullable=True)

    report = relationship("ReconciliationReport", back_populates="items")


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(50), nullable=False)  # service_claimed, payout_completed, reconciliation_alert, ...
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    data = Column(JSON, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class Referral(Base):
    __tablename__ = "referrals"

    id = Column(Integer, primary_key=True, index=True)
    referrer_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    referred_email = Column(String(255), nullable=False, index=True)
    referred_name = Column(String(255), nullable=True)
    type = Column(String(20), default="customer")  # customer, scooper
    status = Column(String(20), default="pending")  # pending, converted, paid, failed
    commission_amount = Column(Float, nullable=False, default=0)
    referred_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    stripe_transfer_id = Column(String(255), nullable=True)
    failure_reason = Column(Text, nullable=True)
    converted_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    referrer = relationship("User", foreign_keys=[referrer_user_id])


class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=True)
    status = Column(String(20), default="active")  # active, archived
    last_message_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    customer = relationship("Customer")
    employee = relationship("Employee")
    messages = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="Message.id",
    )


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    conversation_id = Column(Integer, ForeignKey("conversations.id"), nullable=False, index=True)
    sender_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    body = Column(Text, nullable=False)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    conversation = relationship("Conversation", back_populates="messages")
