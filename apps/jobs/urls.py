from django.urls import path
from .views import (
    JobListCreateView, JobDetailView, JobCancelView, OfferAcceptView, OfferRejectView,
    JobPayView, JobPaymentStatusView, OpenJobListView, AssignedJobListView, OfferSubmitView,
    OfferCooldownView, JobPickupView, JobStartView, JobWorkDoneView, JobFullyCompleteView
)

urlpatterns = [
    # Client
    path('', JobListCreateView.as_view(), name='job_list_create'),
    path('<int:job_id>/', JobDetailView.as_view(), name='job_detail'),
    path('<int:job_id>/cancel/', JobCancelView.as_view(), name='job_cancel'),
    path('<int:job_id>/offers/accept/', OfferAcceptView.as_view(), name='offer_accept'),
    path('<int:job_id>/offers/reject/', OfferRejectView.as_view(), name='offer_reject'),
    path('<int:job_id>/pay/', JobPayView.as_view(), name='job_pay'),
    path('<int:job_id>/payment-status/', JobPaymentStatusView.as_view(), name='job_payment_status'),

    # Worker
    path('open/', OpenJobListView.as_view(), name='open_jobs'),
    path('assigned/', AssignedJobListView.as_view(), name='assigned_jobs'),
    path('<int:job_id>/offers/', OfferSubmitView.as_view(), name='offer_submit'),
    path('<int:job_id>/cooldown/', OfferCooldownView.as_view(), name='offer_cooldown'),
    path('<int:job_id>/pickup/', JobPickupView.as_view(), name='job_pickup'),
    path('<int:job_id>/start/', JobStartView.as_view(), name='job_start'),
    path('<int:job_id>/work-done/', JobWorkDoneView.as_view(), name='job_work_done'),
    path('<int:job_id>/fully-complete/', JobFullyCompleteView.as_view(), name='job_fully_complete'),
]
