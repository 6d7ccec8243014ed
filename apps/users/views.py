import logging

from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi

from apps.jobs.services import has_active_jobs
from core.utils import IsWorker
from . import services
from .serializers import (
    UserSerializer, VerificationSubmitSerializer, VerificationStatusSerializer, WalletSerializer,
    SwitchRoleSerializer,
)

logger = logging.getLogger(__name__)


class UserProfileView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Profile of the authenticated user.",
        responses={200: UserSerializer, 401: 'Unauthorized'}
    )
    def get(self, request):
        return Response(UserSerializer(request.user).data)


class SwitchRoleView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Switch between client and worker. Refused while the user has active jobs.",
        request_body=SwitchRoleSerializer,
        responses={200: UserSerializer, 409: 'Active jobs block the switch'}
    )
    def post(self, request):
        serializer = SwitchRoleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = services.switch_role(request.user, serializer.validated_data['role'])
        return Response(UserSerializer(user).data)


class ActiveJobsStatusView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Whether the user has jobs in progress that block a role switch.",
        responses={200: openapi.Schema(
            type=openapi.TYPE_OBJECT,
            properties={
                'has_active_jobs': openapi.Schema(type=openapi.TYPE_BOOLEAN),
                'can_switch_role': openapi.Schema(type=openapi.TYPE_BOOLEAN),
            }
        )}
    )
    def get(self, request):
        active = has_active_jobs(request.user)
        return Response({'has_active_jobs': active, 'can_switch_role': not active})


class VerificationSubmitView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Submit identity documents for review. Document files are uploaded "
                              "elsewhere; only their URLs are stored here.",
        request_body=VerificationSubmitSerializer,
        responses={200: VerificationStatusSerializer, 409: 'Already approved'}
    )
    def post(self, request):
        serializer = VerificationSubmitSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = services.submit_verification(request.user, serializer.validated_data)
        return Response(VerificationStatusSerializer(user).data)


class VerificationStatusView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(responses={200: VerificationStatusSerializer})
    def get(self, request):
        return Response(VerificationStatusSerializer(request.user).data)


class WalletView(APIView):
    permission_classes = [IsAuthenticated, IsWorker]

    @swagger_auto_schema(
        operation_description="Wallet balance, lifetime earnings and recent transactions.",
        manual_parameters=[
            openapi.Parameter('limit', openapi.IN_QUERY, type=openapi.TYPE_INTEGER,
                              description='Number of recent transactions (default 20)'),
        ],
        responses={200: WalletSerializer}
    )
    def get(self, request):
        try:
            limit = max(1, min(int(request.query_params.get('limit', 20)), 100))
        except ValueError:
            limit = 20
        wallet = request.user.get_wallet()
        return Response(WalletSerializer(wallet, context={'limit': limit}).data)
