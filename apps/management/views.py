import logging

from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi

from apps.payments import payouts
from apps.payments.serializers import WithdrawalSerializer, WithdrawalRejectSerializer, WithdrawalResolveSerializer
from apps.users.serializers import UserSerializer, AdminUserProfileSerializer
from core.exceptions import PayoutRailError
from core.utils import IsAdmin
from . import services
from .models import ManagementLog
from .serializers import ManagementLogSerializer, ReviewReasonSerializer

logger = logging.getLogger(__name__)


class PendingVerificationListView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    @swagger_auto_schema(
        operation_description="Users whose verification documents await review, oldest first.",
        responses={200: AdminUserProfileSerializer(many=True)}
    )
    def get(self, request):
        users = services.list_pending_verifications()
        return Response(AdminUserProfileSerializer(users, many=True).data)


class VerificationApproveView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    @swagger_auto_schema(
        operation_description="Approve a worker's verification and assign a public worker id.",
        responses={200: AdminUserProfileSerializer, 404: 'Not Found', 409: 'Not pending'}
    )
    def post(self, request, user_id):
        user = services.approve_verification(user_id, request.user)
        return Response(AdminUserProfileSerializer(user).data)


class VerificationRejectView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    @swagger_auto_schema(
        operation_description="Reject a worker's verification.",
        request_body=ReviewReasonSerializer,
        responses={200: AdminUserProfileSerializer, 404: 'Not Found', 409: 'Not pending'}
    )
    def post(self, request, user_id):
        serializer = ReviewReasonSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = services.reject_verification(user_id, request.user, serializer.validated_data['reason'])
        return Response(AdminUserProfileSerializer(user).data)


class WithdrawalListView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    @swagger_auto_schema(
        operation_description="Withdrawal requests. Defaults to the ones awaiting approval.",
        manual_parameters=[
            openapi.Parameter('status', openapi.IN_QUERY, type=openapi.TYPE_STRING,
                              description="Withdrawal status, or 'all'"),
        ],
        responses={200: WithdrawalSerializer(many=True)}
    )
    def get(self, request):
        status_filter = request.query_params.get('status', 'pending')
        withdrawals = payouts.list_withdrawals(None if status_filter == 'all' else status_filter)
        return Response(WithdrawalSerializer(withdrawals, many=True).data)


class WithdrawalApproveView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    @swagger_auto_schema(
        operation_description="Approve a pending withdrawal: the wallet is debited and the payout is sent "
                              "to Bulkpe. A refused payout is credited back and answered with 502.",
        responses={200: WithdrawalSerializer, 409: 'Not pending or insufficient balance', 502: 'Payout refused'}
    )
    def post(self, request, withdrawal_id):
        try:
            withdrawal = payouts.approve_withdrawal(withdrawal_id, request.user)
        except PayoutRailError as e:
            services.log_admin_action(
                request.user, 'approve_withdrawal', f"Withdrawal {withdrawal_id} approved, payout refused: {e.detail}"
            )
            raise
        services.log_admin_action(
            request.user, 'approve_withdrawal',
            f"Withdrawal {withdrawal.reference_id} of {withdrawal.amount} approved ({withdrawal.status})"
        )
        return Response(WithdrawalSerializer(withdrawal).data)


class WithdrawalRejectView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    @swagger_auto_schema(
        operation_description="Reject a pending withdrawal. The wallet is untouched.",
        request_body=WithdrawalRejectSerializer,
        responses={200: WithdrawalSerializer, 409: 'Not pending'}
    )
    def post(self, request, withdrawal_id):
        serializer = WithdrawalRejectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        withdrawal = payouts.reject_withdrawal(withdrawal_id, request.user, serializer.validated_data['reason'])
        services.log_admin_action(
            request.user, 'reject_withdrawal', f"Withdrawal {withdrawal.reference_id} rejected"
        )
        return Response(WithdrawalSerializer(withdrawal).data)


class WithdrawalRefreshView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    @swagger_auto_schema(
        operation_description="Poll Bulkpe for the payout's current status and apply it. A payout whose "
                              "initiation timed out is looked up by its reference id.",
        responses={200: WithdrawalSerializer, 409: 'Not sent for payout', 502: 'Provider error'}
    )
    def post(self, request, withdrawal_id):
        withdrawal = payouts.refresh_payout_status(withdrawal_id)
        services.log_admin_action(
            request.user, 'refresh_withdrawal', f"Withdrawal {withdrawal.reference_id} refreshed: {withdrawal.status}"
        )
        return Response(WithdrawalSerializer(withdrawal).data)


class WithdrawalResolveView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    @swagger_auto_schema(
        operation_description="Settle a processing withdrawal by hand after confirming the payout with Bulkpe. "
                              "A failed outcome credits the amount back to the wallet.",
        request_body=WithdrawalResolveSerializer,
        responses={200: WithdrawalSerializer, 409: 'Not processing'}
    )
    def post(self, request, withdrawal_id):
        serializer = WithdrawalResolveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        withdrawal = payouts.resolve_withdrawal(
            withdrawal_id,
            request.user,
            data['outcome'],
            transaction_id=data['transaction_id'] or None,
            utr=data['utr'] or None,
            reason=data['reason'],
        )
        services.log_admin_action(
            request.user, 'resolve_withdrawal',
            f"Withdrawal {withdrawal.reference_id} resolved as {withdrawal.status}"
        )
        return Response(WithdrawalSerializer(withdrawal).data)


class UserSearchView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    @swagger_auto_schema(
        operation_description="Find users whose phone number contains the given digits.",
        manual_parameters=[
            openapi.Parameter('phone', openapi.IN_QUERY, type=openapi.TYPE_STRING, required=True),
        ],
        responses={200: UserSerializer(many=True)}
    )
    def get(self, request):
        users = services.search_users_by_phone(request.query_params.get('phone'))
        return Response(UserSerializer(users, many=True).data)


class AdminUserProfileView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    @swagger_auto_schema(responses={200: AdminUserProfileSerializer, 404: 'Not Found'})
    def get(self, request, user_id):
        user = services.get_user(user_id)
        return Response(AdminUserProfileSerializer(user).data)


class ManagementLogListView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    @swagger_auto_schema(
        operation_description="Most recent administrator actions.",
        responses={200: ManagementLogSerializer(many=True)}
    )
    def get(self, request):
        logs = ManagementLog.objects.select_related('admin')[:200]
        return Response(ManagementLogSerializer(logs, many=True).data)
