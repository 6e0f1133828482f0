from django.urls import path
from . import views

app_name = 'users'

urlpatterns = [
    # Authentication
    path('register/', views.register, name='register'),
    path('login/', views.login, name='login'),
    path('logout/', views.logout, name='logout'),

    # User profile
    path('user/', views.get_current_user, name='current-user'),

    # Email verification
    path('verify-email/', views.verify_email, name='verify-email'),
    path('verify-email/status/', views.verification_status, name='verify-email-status'),
    path('verify-email/resend/', views.resend_verification, name='verify-email-resend'),

    # Cafe admin management (superadmin)
    path('admins/', views.admins, name='admins'),
    path('admins/<uuid:user_id>/', views.remove_admin, name='admin-remove'),
]
