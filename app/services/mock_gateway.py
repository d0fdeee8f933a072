"""
Mock payment rail

Stands in for the card and bank processors, and for mobile money when the
live MoMo integration is switched off. Outcomes are deterministic:

- credit card 4000000000000002 is declined (payment recorded as failed)
- credit card 4000000000000119 raises a processor error (GatewayError)
- any other card and every bank transfer completes immediately
- mobile money starts as pending until settled (``settle``)

The provider-side record is per process and keeps only the most recent
MAX_TRACKED transactions. A transaction it no longer knows reports no status,
which reconciliation treats as "nothing new".
"""

import threading
import uuid
from collections import OrderedDict
from datetime import datetime

from app.errors import GatewayError
from app.models.payment import PaymentMethod, PaymentStatus


class MockGateway:
    DECLINED_CARD = '4000000000000002'
    PROCESSING_ERROR_CARD = '4000000000000119'

    MAX_TRACKED = 10000

    # Provider-side view of recent transactions, shared across instances
    _transactions = OrderedDict()
    _lock = threading.Lock()

    def request_payment(self, amount, currency, method, details, reference=None):
        method = PaymentMethod(method)
        if method == PaymentMethod.CREDIT_CARD:
            number = ''.join(ch for ch in str(details.get('card_number', '')) if ch.isdigit())
            if number == self.PROCESSING_ERROR_CARD:
                raise GatewayError('Card processor unavailable')
            status = PaymentStatus.FAILED if number == self.DECLINED_CARD else PaymentStatus.COMPLETED
        elif method == PaymentMethod.MOBILE_MONEY:
            status = PaymentStatus.PENDING
        else:
            status = PaymentStatus.COMPLETED

        transaction_id = f'txn_{uuid.uuid4().hex[:16]}'
        self._record(transaction_id, status)

        return {
            'transaction_id': transaction_id,
            'status': status,
            'raw': {
                'transaction_id': transaction_id,
                'status': status.value,
                'amount': str(amount),
                'currency': currency,
                'reference': reference,
                'message': 'Payment declined' if status == PaymentStatus.FAILED else 'Payment accepted',
                'timestamp': datetime.utcnow().isoformat(),
            },
        }

    def query_status(self, transaction_id):
        with self._lock:
            status = self._transactions.get(transaction_id)
        return {
            'status': status,
            'raw': {
                'transaction_id': transaction_id,
                'status': status.value if status else 'unknown',
                'timestamp': datetime.utcnow().isoformat(),
            },
        }

    @classmethod
    def _record(cls, transaction_id, status):
        with cls._lock:
            cls._transactions[transaction_id] = status
            cls._transactions.move_to_end(transaction_id)
            while len(cls._transactions) > cls.MAX_TRACKED:
                cls._transactions.popitem(last=False)

    @classmethod
    def settle(cls, transaction_id, status):
        """Simulate the provider reaching a final state for a transaction"""
        cls._record(transaction_id, PaymentStatus(status))

    @classmethod
    def reset(cls):
        with cls._lock:
            cls._transactions.clear()
