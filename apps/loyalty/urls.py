from django.urls import path
from . import views

app_name = 'loyalty'

urlpatterns = [
    # Operator
    path('scan/', views.scan, name='scan'),

    # Customer
    path('balances/', views.balances, name='balances'),
    path('coupons/', views.coupons, name='coupons'),
    path('qr/stamp/', views.stamp_qr, name='stamp-qr'),
    path('qr/coupons/<uuid:coupon_id>/', views.coupon_qr, name='coupon-qr'),
]
