from django.urls import path
from . import views

app_name = 'submissions'

urlpatterns = [
    path('submissions', views.submissions, name='collection'),
    path('submissions/cleanup', views.cleanup, name='cleanup'),
    path('submissions/debug', views.debug, name='debug'),
]
