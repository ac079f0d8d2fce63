from django.urls import path

from . import views

urlpatterns = [
    path('', views.TestListCreateView.as_view(), name='test-list'),
    path('available/', views.AvailableTestsView.as_view(), name='test-available'),
    path('entries/<str:token>/start/', views.StartEntryView.as_view(), name='entry-start'),
    path('entries/<str:token>/end/', views.EndEntryView.as_view(), name='entry-end'),
    path('<int:id>/', views.TestDetailView.as_view(), name='test-detail'),
    path('<int:id>/batches/', views.TestBatchesView.as_view(), name='test-batches'),
    path('<int:id>/transition/', views.TestTransitionView.as_view(), name='test-transition'),
    path('<int:id>/transitions/', views.TestTransitionHistoryView.as_view(), name='test-transitions'),
    path('<int:id>/enter/', views.EnterTestView.as_view(), name='test-enter'),
]
