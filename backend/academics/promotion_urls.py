from django.urls import path

from .views import (
    AdmissionView,
    PromotionCandidatesView,
    PromotionHistoryView,
    PromotionRollbackView,
    PromotionView,
)

urlpatterns = [
    path('', PromotionView.as_view(), name='promotions-promote'),
    path('rollback/', PromotionRollbackView.as_view(), name='promotions-rollback'),
    path('history/', PromotionHistoryView.as_view(), name='promotions-history'),
    path('candidates/<int:class_id>/', PromotionCandidatesView.as_view(), name='promotions-candidates'),
    path('admissions/', AdmissionView.as_view(), name='promotions-admissions'),
]
