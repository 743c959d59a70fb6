# controllab/urls.py

from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path('', include('home.urls')),
    path("admin/", admin.site.urls),
    path('controlgroup/', include('controlgroup.urls')),
    path('api/', include('questions.urls')),
    path('api/', include('submissions.urls')),
]
