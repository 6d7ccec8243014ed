import hashlib
import hmac
import logging
import uuid

import requests
from django.conf import settings

from core.exceptions import PayoutRailError

logger = logging.getLogger(__name__)


class PayoutInitiationUnknown(Exception):
    """The rail did not answer in time; the payout may or may not have been created."""


def generate_reference_id():
    return f"WD-{uuid.uuid4().hex[:16].upper()}"


def _headers():
    return {
        'Authorization': f'Bearer {settings.BULKPE_API_KEY.strip()}',
        'Content-Type': 'application/json'
    }


def _post(path, payload):
    url = f"{settings.BULKPE_BASE_URL}/{path}"
    try:
        response = requests.post(url, json=payload, headers=_headers(), timeout=settings.BULKPE_TIMEOUT)
    except requests.exceptions.Timeout as e:
        logger.error(f"Bulkpe request to {path} timed out: {str(e)}")
        raise PayoutInitiationUnknown(str(e))
    except requests.exceptions.RequestException as e:
        logger.error(f"Bulkpe request to {path} failed: {str(e)}")
        raise PayoutRailError(f"Payout provider unreachable: {str(e)}")

    try:
        data = response.json()
    except ValueError:
        data = {}
    if response.status_code >= 400 or data.get('status') is False:
        message = data.get('message') or response.text or 'Unknown error'
        logger.error(f"Bulkpe {path} rejected request: HTTP {response.status_code}, {message}")
        raise PayoutRailError(f"Payout provider rejected the request: {message}")
    return data


def initiate_payout(withdrawal):
    """
    Send a payout instruction for an approved withdrawal.

    UPI destinations use the UPI mode, bank destinations IMPS. Returns a dict
    with the rail's ``transaction_id``, ``reference_id`` and ``status``.
    Raises PayoutRailError when the rail refuses and PayoutInitiationUnknown
    when the call times out.
    """
    beneficiary = withdrawal.beneficiary_name or withdrawal.user.display_name
    payload = {
        'amount': float(withdrawal.amount),
        'reference_id': withdrawal.reference_id,
        'transcation_note': f"Withdrawal request payout - {beneficiary}",
        'beneficiaryName': beneficiary,
    }
    if withdrawal.upi_id:
        payload.update({'payment_mode': 'UPI', 'upi': withdrawal.upi_id})
    else:
        payload.update({
            'payment_mode': 'IMPS',
            'account_number': withdrawal.bank_account_number,
            'ifsc': withdrawal.ifsc,
        })

    logger.info(f"Initiating Bulkpe {payload['payment_mode']} payout for {withdrawal.reference_id}")
    data = _post('initiatepayout', payload)
    body = data.get('data') or {}
    transaction_id = body.get('transcation_id') or body.get('transaction_id')
    if not transaction_id:
        raise PayoutRailError("Payout provider response did not include a transaction id.")
    return {
        'transaction_id': transaction_id,
        'reference_id': body.get('reference_id', withdrawal.reference_id),
        'status': body.get('status', 'PENDING'),
        'payment_mode': payload['payment_mode'],
        'message': data.get('message', ''),
    }


def fetch_payout_status(transaction_id=None, reference_id=None):
    """
    Ask the rail for the current state of a payout, by its transaction id or,
    when the initiation response never arrived, by our reference id.
    """
    if transaction_id:
        payload = {'transcation_id': transaction_id}
    else:
        payload = {'reference_id': reference_id}
    data = _post('fetchStatus', payload)
    body = data.get('data') or {}
    return {
        'transaction_id': body.get('transcation_id') or body.get('transaction_id') or transaction_id,
        'status': body.get('status'),
        'utr': body.get('utr'),
        'amount': body.get('amount'),
        'payment_mode': body.get('payment_mode'),
    }


def verify_webhook_signature(raw_body, signature):
    secret = settings.BULKPE_WEBHOOK_SECRET.encode('utf-8')
    computed = hmac.new(secret, raw_body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(computed, signature)
