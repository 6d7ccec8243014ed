from django.urls import path
from . import views

urlpatterns = [
    # Verification review
    path('verifications/pending/', views.PendingVerificationListView.as_view(), name='pending_verifications'),
    path('verifications/<int:user_id>/approve/', views.VerificationApproveView.as_view(), name='approve_verification'),
    path('verifications/<int:user_id>/reject/', views.VerificationRejectView.as_view(), name='reject_verification'),

    # Withdrawals
    path('withdrawals/', views.WithdrawalListView.as_view(), name='admin_withdrawals'),
    path('withdrawals/<int:withdrawal_id>/approve/', views.WithdrawalApproveView.as_view(), name='approve_withdrawal'),
    path('withdrawals/<int:withdrawal_id>/reject/', views.WithdrawalRejectView.as_view(), name='reject_withdrawal'),
    path('withdrawals/<int:withdrawal_id>/refresh/', views.WithdrawalRefreshView.as_view(), name='refresh_withdrawal'),
    path('withdrawals/<int:withdrawal_id>/resolve/', views.WithdrawalResolveView.as_view(), name='resolve_withdrawal'),

    # Users
    path('users/search/', views.UserSearchView.as_view(), name='user_search'),
    path('users/<int:user_id>/', views.AdminUserProfileView.as_view(), name='admin_user_profile'),
    path('management-logs/', views.ManagementLogListView.as_view(), name='management_logs'),
]
