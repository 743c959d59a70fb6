from django.urls import path
from . import views

app_name = 'controlgroup'

urlpatterns = [
    path('', views.index, name='index'),
    path('mode/', views.choose_mode, name='choose_mode'),
    path('qr.png', views.qr_code, name='qr_code'),
    path('act/<slug:action>/', views.act, name='act'),
]
