from django.urls import path

from .views import SchoolClassListCreateView

urlpatterns = [
    path('classes/', SchoolClassListCreateView.as_view(), name='classes-list-create'),
]
