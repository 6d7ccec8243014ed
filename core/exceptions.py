"""
Marketplace error taxonomy and the DRF exception handler that renders it.

Every failure leaves the API as ``{"error": <message>, "code": <code>}``,
plus any extra fields the error carries (``retry_after`` for an active
offer cooldown, ``fields`` for serializer validation errors). Unexpected
exceptions are logged with their traceback and answered with a generic 500.
"""
import logging
import math

from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class MarketplaceError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Request could not be processed.'
    default_code = 'error'

    def __init__(self, detail=None, **extra):
        super().__init__(detail)
        self.extra = extra

    @property
    def code(self):
        return self.default_code


class InvalidRequest(MarketplaceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid request.'
    default_code = 'validation_error'


class ResourceNotFound(MarketplaceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Not found.'
    default_code = 'not_found'


class NotOwner(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You are not authorized to modify this resource.'
    default_code = 'not_authorized'


class PreconditionFailed(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Resource is not in a state that allows this action.'
    default_code = 'precondition_failed'


class StateConflict(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Resource was modified concurrently.'
    default_code = 'conflict'


class OfferCooldownActive(MarketplaceError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_detail = 'Please wait before submitting another offer on this job.'
    default_code = 'offer_cooldown'

    def __init__(self, retry_after, detail=None):
        super().__init__(detail, retry_after=retry_after)
        self.retry_after = retry_after


class PayoutRailError(MarketplaceError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = 'Payout provider rejected or failed the request.'
    default_code = 'payout_rail_error'


class SettlementIncomplete(MarketplaceError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'Payment was recorded but settlement is pending reconciliation.'
    default_code = 'settlement_incomplete'


def _first_message(data):
    if isinstance(data, dict):
        for value in data.values():
            return _first_message(value)
    if isinstance(data, (list, tuple)) and data:
        return _first_message(data[0])
    return str(data)


def marketplace_exception_handler(exc, context):
    response = exception_handler(exc, context)
    view = context.get('view')

    if response is None:
        logger.error(
            f"Unhandled error in {view.__class__.__name__ if view else 'unknown view'}: {exc}",
            exc_info=exc,
        )
        return Response(
            {'error': 'Internal server error', 'code': 'server_error'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if isinstance(exc, MarketplaceError):
        body = {'error': str(exc.detail), 'code': exc.code}
        body.update(exc.extra)
        if isinstance(exc, OfferCooldownActive):
            response['Retry-After'] = str(math.ceil(exc.retry_after))
    elif isinstance(exc, ValidationError):
        body = {
            'error': _first_message(response.data),
            'code': 'validation_error',
            'fields': response.data,
        }
    else:
        detail = response.data.get('detail') if isinstance(response.data, dict) else response.data
        body = {'error': str(detail), 'code': getattr(detail, 'code', 'error')}

    response.data = body
    return response
