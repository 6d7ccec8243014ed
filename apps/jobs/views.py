import logging
import math

from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi

from apps.payments.serializers import PaymentDetailsSerializer
from apps.payments.services import pay_job, payment_status
from core.exceptions import NotOwner
from core.utils import IsClient, IsWorker
from . import services
from .serializers import (
    JobSerializer, WorkerJobSerializer, OfferSerializer, OfferCreateSerializer,
    OfferDecisionSerializer, JobPaymentSerializer,
)

logger = logging.getLogger(__name__)

status_param = openapi.Parameter(
    'status', openapi.IN_QUERY, type=openapi.TYPE_STRING,
    description='Comma separated job statuses to include'
)


class JobListCreateView(APIView):
    permission_classes = [IsAuthenticated, IsClient]

    @swagger_auto_schema(
        operation_description="List the calling client's jobs, optionally filtered by status.",
        manual_parameters=[status_param],
        responses={200: JobSerializer(many=True)}
    )
    def get(self, request):
        jobs = services.list_client_jobs(request.user, request.query_params.get('status'))
        return Response(JobSerializer(jobs, many=True).data)

    @swagger_auto_schema(
        operation_description="Post a new job. It starts out open for offers.",
        request_body=JobSerializer,
        responses={201: JobSerializer, 400: 'Bad Request', 403: 'Forbidden'}
    )
    def post(self, request):
        serializer = JobSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        job = services.create_job(request.user, serializer.validated_data)
        return Response(JobSerializer(job).data, status=status.HTTP_201_CREATED)


class JobDetailView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Fetch a job. Clients see their own jobs with all offers; "
                              "workers see open jobs and jobs assigned to them.",
        responses={200: JobSerializer, 403: 'Forbidden', 404: 'Not Found'}
    )
    def get(self, request, job_id):
        job = services.get_job(job_id)
        if job.client_id == request.user.id:
            return Response(JobSerializer(job).data)
        if request.user.is_worker and (job.status == 'open' or job.assigned_worker_id == request.user.id):
            return Response(WorkerJobSerializer(job, context={'request': request}).data)
        raise NotOwner("You do not have access to this job.")

    @swagger_auto_schema(
        operation_description="Edit an open job that has no accepted offer.",
        request_body=JobSerializer,
        responses={200: JobSerializer, 403: 'Forbidden', 409: 'Job already assigned'}
    )
    def patch(self, request, job_id):
        serializer = JobSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        job = services.update_job(job_id, request.user, serializer.validated_data)
        return Response(JobSerializer(job).data)

    def put(self, request, job_id):
        return self.patch(request, job_id)

    @swagger_auto_schema(
        operation_description="Delete an open job that has no accepted offer.",
        responses={204: 'Deleted', 403: 'Forbidden', 409: 'Job already assigned'}
    )
    def delete(self, request, job_id):
        services.delete_job(job_id, request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)


class JobCancelView(APIView):
    permission_classes = [IsAuthenticated, IsClient]

    @swagger_auto_schema(
        operation_description="Cancel an open job. Pending offers are rejected.",
        responses={200: JobSerializer, 409: 'Job is not open'}
    )
    def post(self, request, job_id):
        job = services.cancel_job(job_id, request.user)
        return Response(JobSerializer(job).data)


class OfferAcceptView(APIView):
    permission_classes = [IsAuthenticated, IsClient]

    @swagger_auto_schema(
        operation_description="Accept a worker's pending offer. Every other offer is rejected and the job is assigned.",
        request_body=OfferDecisionSerializer,
        responses={200: JobSerializer, 403: 'Forbidden', 404: 'No pending offer', 409: 'Job is not open'}
    )
    def post(self, request, job_id):
        serializer = OfferDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        job, offer = services.accept_offer(job_id, request.user, serializer.validated_data['worker_id'])
        job = services.get_job(job.id)
        return Response({
            'message': 'Offer accepted.',
            'job': JobSerializer(job).data,
        })


class OfferRejectView(APIView):
    permission_classes = [IsAuthenticated, IsClient]

    @swagger_auto_schema(
        operation_description="Reject a worker's pending offer.",
        request_body=OfferDecisionSerializer,
        responses={200: OfferSerializer, 404: 'No pending offer'}
    )
    def post(self, request, job_id):
        serializer = OfferDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        offer = services.reject_offer(job_id, request.user, serializer.validated_data['worker_id'])
        return Response(OfferSerializer(offer).data)


class JobPayView(APIView):
    permission_classes = [IsAuthenticated, IsClient]

    @swagger_auto_schema(
        operation_description="Record payment for a job whose work is done. UPI payments credit the "
                              "worker's wallet with the job budget less commission; cash payments "
                              "record the commission the worker owes.",
        request_body=JobPaymentSerializer,
        responses={
            200: PaymentDetailsSerializer,
            409: 'Job is not work_done',
            503: 'Payment recorded, settlement pending'
        }
    )
    def post(self, request, job_id):
        serializer = JobPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        job, payment = pay_job(
            job_id,
            request.user,
            serializer.validated_data['payment_method'],
            serializer.validated_data.get('transaction_id') or None,
        )
        return Response({
            'message': 'Payment recorded.',
            'job_status': job.status,
            'payment': PaymentDetailsSerializer(payment).data,
        })


class JobPaymentStatusView(APIView):
    permission_classes = [IsAuthenticated, IsClient]

    @swagger_auto_schema(
        operation_description="Payment and settlement state of a job.",
        responses={200: PaymentDetailsSerializer}
    )
    def get(self, request, job_id):
        payment = payment_status(job_id, request.user)
        if payment is None:
            return Response({'paid': False, 'payment': None})
        return Response({'paid': True, 'payment': PaymentDetailsSerializer(payment).data})


class OpenJobListView(APIView):
    permission_classes = [IsAuthenticated, IsWorker]

    @swagger_auto_schema(
        operation_description="Open jobs a worker can make offers on.",
        manual_parameters=[
            openapi.Parameter('category', openapi.IN_QUERY, type=openapi.TYPE_STRING),
            openapi.Parameter('pincode', openapi.IN_QUERY, type=openapi.TYPE_STRING),
        ],
        responses={200: WorkerJobSerializer(many=True)}
    )
    def get(self, request):
        jobs = services.list_open_jobs(
            request.query_params.get('category'), request.query_params.get('pincode')
        ).exclude(client=request.user).prefetch_related('offers')
        return Response(WorkerJobSerializer(jobs, many=True, context={'request': request}).data)


class AssignedJobListView(APIView):
    permission_classes = [IsAuthenticated, IsWorker]

    @swagger_auto_schema(
        operation_description="Jobs assigned to the calling worker.",
        manual_parameters=[status_param],
        responses={200: WorkerJobSerializer(many=True)}
    )
    def get(self, request):
        jobs = services.list_assigned_jobs(request.user, request.query_params.get('status'))
        return Response(WorkerJobSerializer(jobs, many=True, context={'request': request}).data)


class OfferSubmitView(APIView):
    permission_classes = [IsAuthenticated, IsWorker]

    @swagger_auto_schema(
        operation_description="Make an offer on an open job. Replaces the worker's previous offer; "
                              "a worker may offer again on the same job only after the cooldown.",
        request_body=OfferCreateSerializer,
        responses={201: OfferSerializer, 409: 'Job is not open', 429: 'Cooldown active'}
    )
    def post(self, request, job_id):
        serializer = OfferCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        offer = services.submit_offer(
            job_id, request.user, serializer.validated_data['amount'], serializer.validated_data['message']
        )
        return Response(OfferSerializer(offer).data, status=status.HTTP_201_CREATED)


class OfferCooldownView(APIView):
    permission_classes = [IsAuthenticated, IsWorker]

    @swagger_auto_schema(
        operation_description="Seconds until the worker may make another offer on this job.",
        responses={200: openapi.Schema(
            type=openapi.TYPE_OBJECT,
            properties={
                'can_offer': openapi.Schema(type=openapi.TYPE_BOOLEAN),
                'remaining_seconds': openapi.Schema(type=openapi.TYPE_INTEGER),
            }
        )}
    )
    def get(self, request, job_id):
        job = services.get_job(job_id)
        remaining = services.offer_cooldown_remaining(job, request.user)
        return Response({
            'can_offer': remaining <= 0,
            'remaining_seconds': math.ceil(remaining),
        })


class JobPickupView(APIView):
    permission_classes = [IsAuthenticated, IsWorker]

    @swagger_auto_schema(
        operation_description="Take an open job directly, without an offer. Pending offers are rejected.",
        responses={200: WorkerJobSerializer, 409: 'Job is not open or already has an accepted offer'}
    )
    def post(self, request, job_id):
        job = services.pickup_job(job_id, request.user)
        return Response(WorkerJobSerializer(job, context={'request': request}).data)


class WorkerJobActionView(APIView):
    """Base for the assigned worker's status moves."""
    permission_classes = [IsAuthenticated, IsWorker]
    transition = None

    def post(self, request, job_id):
        job = self.transition(job_id, request.user)
        return Response(WorkerJobSerializer(job, context={'request': request}).data)


class JobStartView(WorkerJobActionView):
    transition = staticmethod(services.start_job)

    @swagger_auto_schema(
        operation_description="Assigned worker starts the job.",
        responses={200: WorkerJobSerializer, 403: 'Not the assigned worker'}
    )
    def post(self, request, job_id):
        return super().post(request, job_id)


class JobWorkDoneView(WorkerJobActionView):
    transition = staticmethod(services.mark_work_done)

    @swagger_auto_schema(
        operation_description="Assigned worker reports the work finished; the client can then pay.",
        responses={200: WorkerJobSerializer, 403: 'Not the assigned worker'}
    )
    def post(self, request, job_id):
        return super().post(request, job_id)


class JobFullyCompleteView(WorkerJobActionView):
    transition = staticmethod(services.mark_fully_completed)

    @swagger_auto_schema(
        operation_description="Assigned worker confirms a paid job as fully completed.",
        responses={200: WorkerJobSerializer, 403: 'Not the assigned worker', 409: 'Job not paid'}
    )
    def post(self, request, job_id):
        return super().post(request, job_id)
