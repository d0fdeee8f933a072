"""
MTN MoMo Collection API client
https://momodeveloper.mtn.com

Request-to-pay is asynchronous on the MoMo side: the initial call only
returns 202 and the final status arrives through the callback (webhook)
or by polling the transaction.
"""

import uuid
from typing import Any, Dict, Optional

import requests

from app.errors import GatewayError
from app.models.payment import PaymentStatus


class MomoService:
    """MTN MoMo mobile-money gateway"""

    STATUS_MAP = {
        'PENDING': PaymentStatus.PENDING,
        'SUCCESSFUL': PaymentStatus.COMPLETED,
        'FAILED': PaymentStatus.FAILED,
        'REJECTED': PaymentStatus.FAILED,
        'TIMEOUT': PaymentStatus.FAILED,
    }

    def __init__(
        self,
        base_url: str,
        subscription_key: str,
        user_id: str,
        api_key: str,
        environment: str = "sandbox",
        callback_url: Optional[str] = None,
        timeout: float = 15,
    ):
        self.base_url = base_url.rstrip('/')
        self.subscription_key = subscription_key
        self.user_id = user_id
        self.api_key = api_key
        self.environment = environment
        self.callback_url = callback_url
        self.timeout = timeout

    @classmethod
    def from_config(cls, config) -> "MomoService":
        return cls(
            base_url=config['MOMO_BASE_URL'],
            subscription_key=config.get('MOMO_SUBSCRIPTION_KEY'),
            user_id=config.get('MOMO_USER_ID'),
            api_key=config.get('MOMO_API_KEY'),
            environment=config.get('MOMO_ENVIRONMENT', 'sandbox'),
            callback_url=config.get('MOMO_CALLBACK_URL'),
            timeout=config.get('PAYMENT_GATEWAY_TIMEOUT', 15),
        )

    @classmethod
    def normalize_status(cls, status: Optional[str]) -> Optional[PaymentStatus]:
        if not status:
            return None
        status = str(status).upper()
        if status in cls.STATUS_MAP:
            return cls.STATUS_MAP[status]
        try:
            return PaymentStatus(status.lower())
        except ValueError:
            return None

    @staticmethod
    def normalize_phone(phone: str) -> str:
        digits = ''.join(ch for ch in str(phone) if ch.isdigit())
        return digits if digits.startswith('250') else f'250{digits.lstrip("0")}'

    def _get_token(self) -> str:
        try:
            response = requests.post(
                f"{self.base_url}/collection/token/",
                auth=(self.user_id, self.api_key),
                headers={'Ocp-Apim-Subscription-Key': self.subscription_key},
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()['access_token']
        except (requests.exceptions.RequestException, KeyError, ValueError) as e:
            raise GatewayError(f'Failed to authenticate with MoMo API: {e}')

    def _headers(self, token: str, reference_id: Optional[str] = None) -> Dict[str, str]:
        headers = {
            'Authorization': f'Bearer {token}',
            'X-Target-Environment': self.environment,
            'Ocp-Apim-Subscription-Key': self.subscription_key,
            'Content-Type': 'application/json',
        }
        if reference_id:
            headers['X-Reference-Id'] = reference_id
            if self.callback_url:
                headers['X-Callback-Url'] = self.callback_url
        return headers

    def request_payment(
        self,
        amount,
        currency: str,
        method,
        details: Dict[str, Any],
        reference: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Start a request-to-pay on the payer's phone.

        Returns:
            {"transaction_id": ..., "status": PaymentStatus.PENDING|FAILED, "raw": {...}}
        """
        token = self._get_token()
        reference_id = str(uuid.uuid4())
        payload = {
            'amount': str(amount),
            'currency': currency,
            'externalId': reference_id,
            'payer': {
                'partyIdType': 'MSISDN',
                'partyId': self.normalize_phone(details['phone']),
            },
            'payerMessage': 'Property Rental Payment',
            'payeeNote': f'Booking {reference}' if reference else 'Property Rental Payment',
        }

        try:
            response = requests.post(
                f"{self.base_url}/collection/v1_0/requesttopay",
                json=payload,
                headers=self._headers(token, reference_id),
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            raise GatewayError('MoMo request timed out')
        except requests.exceptions.RequestException as e:
            raise GatewayError(f'Payment initiation failed: {e}')

        if response.status_code >= 500:
            raise GatewayError(f'MoMo error {response.status_code}')

        status = PaymentStatus.PENDING if response.status_code == 202 else PaymentStatus.FAILED
        return {
            'transaction_id': reference_id,
            'status': status,
            'raw': {'status_code': response.status_code, 'body': response.text or None},
        }

    def query_status(self, transaction_id: str) -> Dict[str, Any]:
        """Poll MoMo for the current state of a request-to-pay"""
        token = self._get_token()
        try:
            response = requests.get(
                f"{self.base_url}/collection/v1_0/requesttopay/{transaction_id}",
                headers=self._headers(token),
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.Timeout:
            raise GatewayError('MoMo status query timed out')
        except (requests.exceptions.RequestException, ValueError) as e:
            raise GatewayError(f'Payment verification failed: {e}')

        return {
            'status': self.normalize_status(data.get('status')),
            'raw': data,
        }
