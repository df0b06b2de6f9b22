from django.urls import path
from . import views

urlpatterns = [
    path('health/', views.health_check, name='classroom_health'),
    path('teachers/generate/', views.generate_teacher_view, name='classroom_generate_teacher'),
    path('matte/', views.matte_view, name='classroom_matte'),
]
