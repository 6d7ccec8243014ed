from django.urls import path
from rest_framework.authtoken.views import obtain_auth_token
from .views import (
    UserProfileView, SwitchRoleView, ActiveJobsStatusView, VerificationSubmitView,
    VerificationStatusView, WalletView
)

urlpatterns = [
    # Authentication
    path('auth/token/', obtain_auth_token, name='auth_token'),

    # Profile
    path('profile/', UserProfileView.as_view(), name='user_profile'),
    path('switch-role/', SwitchRoleView.as_view(), name='switch_role'),
    path('active-jobs-status/', ActiveJobsStatusView.as_view(), name='active_jobs_status'),

    # Worker verification
    path('verification/', VerificationSubmitView.as_view(), name='verification_submit'),
    path('verification/status/', VerificationStatusView.as_view(), name='verification_status'),

    # Wallet
    path('wallet/', WalletView.as_view(), name='wallet'),
]
