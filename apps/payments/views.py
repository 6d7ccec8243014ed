import logging

from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework.exceptions import ValidationError
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi
from django.conf import settings
from django.contrib.auth import get_user_model

from apps.jobs.services import get_job
from apps.management.services import log_admin_action
from core.exceptions import NotOwner, ResourceNotFound
from core.utils import IsWorker, IsAdmin
from . import payouts, services
from .serializers import (
    WithdrawalSerializer, WithdrawalRequestSerializer, PayoutWebhookSerializer, CommissionEntrySerializer,
    CommissionAddSerializer, CommissionPaySerializer,
)
from .utils import verify_webhook_signature

logger = logging.getLogger(__name__)
User = get_user_model()


class WithdrawalView(APIView):
    permission_classes = [IsAuthenticated, IsWorker]

    @swagger_auto_schema(
        operation_description="Withdrawal history of the calling worker, newest first.",
        responses={200: WithdrawalSerializer(many=True)}
    )
    def get(self, request):
        withdrawals = payouts.list_user_withdrawals(request.user)
        return Response(WithdrawalSerializer(withdrawals, many=True).data)

    @swagger_auto_schema(
        operation_description="Request a withdrawal of wallet balance to a UPI id or bank account. "
                              "The wallet is debited when an administrator approves it.",
        request_body=WithdrawalRequestSerializer,
        responses={201: WithdrawalSerializer, 400: 'Bad Request', 409: 'Insufficient balance'}
    )
    def post(self, request):
        serializer = WithdrawalRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        withdrawal = payouts.request_withdrawal(request.user, **serializer.validated_data)
        return Response(WithdrawalSerializer(withdrawal).data, status=status.HTTP_201_CREATED)


class BulkpeWebhookView(APIView):
    """Payout status notifications from Bulkpe."""
    authentication_classes = []
    permission_classes = [AllowAny]

    @swagger_auto_schema(
        operation_description="Payout status callback. Answers 404 for an unknown transaction id and 200 "
                              "once the withdrawal is found.",
        request_body=PayoutWebhookSerializer,
        responses={200: 'Processed', 401: 'Invalid signature', 404: 'Unknown transaction'}
    )
    def post(self, request):
        raw_body = request.body
        signature = request.headers.get('X-Bulkpe-Signature')
        signed = bool(settings.BULKPE_WEBHOOK_SECRET)
        if signed and not (signature and verify_webhook_signature(raw_body, signature)):
            logger.error('Missing or invalid Bulkpe webhook signature')
            return Response(
                {'error': 'Invalid webhook signature', 'code': 'invalid_signature'},
                status=status.HTTP_401_UNAUTHORIZED
            )

        transaction_id = request.data.get('transaction_id') or request.data.get('transcation_id')
        if not transaction_id:
            raise ValidationError({'transaction_id': ['This field is required.']})
        withdrawal = payouts.find_withdrawal_for_payout(transaction_id, request.data.get('reference_id'))
        if withdrawal is None:
            logger.warning(f"Bulkpe webhook for unknown transaction {transaction_id}")
            return Response(
                {'error': 'Transaction not found', 'code': 'not_found'}, status=status.HTTP_404_NOT_FOUND
            )

        serializer = PayoutWebhookSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        logger.info(f"Bulkpe webhook: {data['transaction_id']} {data['status']}")

        try:
            if signed:
                withdrawal = payouts.apply_payout_update(
                    data['transaction_id'],
                    data['status'],
                    utr=data.get('utr') or None,
                    amount=data.get('amount'),
                    payment_mode=data.get('payment_mode') or None,
                    reference_id=data.get('reference_id') or None,
                )
            else:
                # Unsigned callbacks are only a hint: apply what the rail itself reports
                withdrawal = payouts.refresh_payout_status(withdrawal.id)
        except Exception as e:
            # Found but not reconciled: answering non-2xx would only make the rail retry
            logger.error(
                f"Reconciliation of payout {data['transaction_id']} for withdrawal {withdrawal.id} failed: {e}",
                exc_info=True,
            )
            return Response({'message': 'Received', 'reconciled': False})
        return Response({'message': 'Webhook processed', 'status': withdrawal.status, 'reconciled': True})


def _can_view_commission(user, worker_id):
    return user.id == worker_id or user.role == 'admin' or user.is_superuser


class CommissionLedgerView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Commission entries and pending/paid totals for a worker. "
                              "Workers see their own ledger; administrators may pass a worker id.",
        responses={200: openapi.Schema(
            type=openapi.TYPE_OBJECT,
            properties={
                'entries': openapi.Schema(type=openapi.TYPE_ARRAY, items=openapi.Schema(type=openapi.TYPE_OBJECT)),
                'total_pending': openapi.Schema(type=openapi.TYPE_NUMBER),
                'total_paid': openapi.Schema(type=openapi.TYPE_NUMBER),
                'total_entries': openapi.Schema(type=openapi.TYPE_INTEGER),
            }
        )}
    )
    def get(self, request, worker_id=None):
        worker_id = worker_id or request.user.id
        if not _can_view_commission(request.user, worker_id):
            raise NotOwner("You can only view your own commission ledger.")
        try:
            worker = User.objects.get(pk=worker_id)
        except User.DoesNotExist:
            raise ResourceNotFound("Worker not found.")
        entries, totals = services.commission_ledger(worker)
        return Response({
            'entries': CommissionEntrySerializer(entries, many=True).data,
            'total_pending': str(totals['total_pending']),
            'total_paid': str(totals['total_paid']),
            'total_entries': totals['total_entries'],
        })


class CommissionAddView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    @swagger_auto_schema(
        operation_description="Record the commission owed on a cash-paid job.",
        request_body=CommissionAddSerializer,
        responses={201: CommissionEntrySerializer, 409: 'Not a cash job or already recorded'}
    )
    def post(self, request):
        serializer = CommissionAddSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        entry = services.add_commission_entry(serializer.validated_data['job_id'])
        log_admin_action(request.user, 'add_commission', f"Recorded commission {entry.amount} for job {entry.job_id}")
        return Response(CommissionEntrySerializer(entry).data, status=status.HTTP_201_CREATED)


class CommissionPayView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    @swagger_auto_schema(
        operation_description="Mark a commission entry as collected. Defaults to the full amount.",
        request_body=CommissionPaySerializer,
        responses={200: CommissionEntrySerializer, 404: 'Not Found', 409: 'Already paid'}
    )
    def post(self, request, entry_id):
        serializer = CommissionPaySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        entry = services.pay_commission(entry_id, serializer.validated_data.get('amount'))
        log_admin_action(
            request.user, 'pay_commission', f"Commission entry {entry.id} paid: {entry.paid_amount}"
        )
        return Response(CommissionEntrySerializer(entry).data)


class CommissionStatusView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(operation_description="Commission state of a job.")
    def get(self, request, job_id):
        job = get_job(job_id)
        user = request.user
        if user.id not in (job.client_id, job.assigned_worker_id) and not (user.role == 'admin' or user.is_superuser):
            raise NotOwner("You do not have access to this job.")
        result = services.commission_status(job.id)
        return Response({
            'job_id': job.id,
            'has_commission': result['has_commission'],
            'status': result['status'],
            'entry': CommissionEntrySerializer(result['entry']).data if result['entry'] else None,
        })
