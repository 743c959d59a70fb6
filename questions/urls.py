from django.urls import path
from . import views

app_name = 'questions'

urlpatterns = [
    path('questions', views.question_list, name='list'),
    path('questions/<int:question_id>', views.question_detail, name='detail'),
]
