from django.urls import path

from . import views

app_name = 'districts'

urlpatterns = [
    path('api/resolve/', views.resolve_postal_code, name='resolve'),
]
