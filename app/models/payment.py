"""
Payment Model
"""

from extensions import db
from datetime import datetime
from enum import Enum


class PaymentMethod(str, Enum):
    """Payment method enum"""
    MOBILE_MONEY = 'mobile_money'
    CREDIT_CARD = 'credit_card'
    BANK_TRANSFER = 'bank_transfer'
    PAYPAL = 'paypal'
    CASH = 'cash'


class PaymentStatus(str, Enum):
    """Payment status enum"""
    PENDING = 'pending'
    COMPLETED = 'completed'
    FAILED = 'failed'
    REFUNDED = 'refunded'
    PARTIALLY_REFUNDED = 'partially_refunded'


# Methods that can be charged online, each with the detail fields it needs
PAYMENT_METHOD_FIELDS = {
    PaymentMethod.MOBILE_MONEY: ('phone', 'network'),
    PaymentMethod.CREDIT_CARD: ('card_number', 'expiry', 'cvv'),
    PaymentMethod.BANK_TRANSFER: ('account_number', 'bank_name'),
}

# Order in which gateway-reported states may replace each other. A write from
# process/verify/webhook only lands if it moves strictly up this ladder, so a
# late "failed" never overwrites "completed".
GATEWAY_PRECEDENCE = {
    PaymentStatus.PENDING: 0,
    PaymentStatus.FAILED: 1,
    PaymentStatus.COMPLETED: 2,
}

# Statuses whose money counts towards the booking amount
SETTLED_STATUSES = (PaymentStatus.COMPLETED, PaymentStatus.PARTIALLY_REFUNDED)


def can_gateway_advance(current, new):
    """True if a gateway report of ``new`` may replace ``current``"""
    if current not in GATEWAY_PRECEDENCE or new not in GATEWAY_PRECEDENCE:
        return False
    return GATEWAY_PRECEDENCE[new] > GATEWAY_PRECEDENCE[current]


def mask_details(method, details):
    """Keep only what is safe to store: last four digits of card/account numbers"""
    masked = {}
    for field in PAYMENT_METHOD_FIELDS.get(method, ()):
        value = str(details.get(field, ''))
        if field == 'cvv':
            continue
        if field in ('card_number', 'account_number'):
            masked[f'{field}_last4'] = value[-4:]
        else:
            masked[field] = value
    return masked


class Payment(db.Model):
    """One payment attempt against a booking"""

    __tablename__ = 'payments'
    __table_args__ = (
        db.CheckConstraint('amount >= 0', name='ck_payments_amount_non_negative'),
    )

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey('bookings.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    currency = db.Column(db.String(3), default='RWF', nullable=False)
    method = db.Column(db.Enum(PaymentMethod), nullable=False)
    details = db.Column(db.JSON, default=dict)

    # External correlation key shared with the gateway
    transaction_id = db.Column(db.String(100), unique=True, nullable=False)
    status = db.Column(db.Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)
    gateway_response = db.Column(db.JSON)
    error = db.Column(db.Text)

    # Refund details
    refund_amount = db.Column(db.Numeric(12, 2))
    refund_reason = db.Column(db.String(255))
    refunded_at = db.Column(db.DateTime)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    payer = db.relationship('User', foreign_keys=[user_id])

    def __init__(self, **kwargs):
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)

    @property
    def settled_amount(self):
        """Money from this payment that still counts towards the booking"""
        if self.status == PaymentStatus.COMPLETED:
            return self.amount
        if self.status == PaymentStatus.PARTIALLY_REFUNDED:
            return self.amount - (self.refund_amount or 0)
        return 0

    def to_dict(self, include_booking=False):
        data = {
            'id': self.id,
            'booking_id': self.booking_id,
            'user_id': self.user_id,
            'amount': float(self.amount),
            'currency': self.currency,
            'method': self.method.value,
            'details': self.details or {},
            'transaction_id': self.transaction_id,
            'status': self.status.value,
            'error': self.error,
            'refund_amount': float(self.refund_amount) if self.refund_amount is not None else None,
            'refund_reason': self.refund_reason,
            'refunded_at': self.refunded_at.isoformat() if self.refunded_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

        if include_booking:
            data['booking'] = self.booking.to_dict(include_property=True)

        return data

    def __repr__(self):
        return f'<Payment {self.transaction_id} {self.status.value}>'
