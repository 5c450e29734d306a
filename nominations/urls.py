from django.urls import path

from .views import (
    CategoryDetailView,
    CategoryListView,
    NomineeApproveView,
    NomineeDisqualifyView,
    NomineeListCreateView,
    NomineeRejectView,
)

urlpatterns = [
    path("categories/", CategoryListView.as_view(), name="category_list"),
    path("categories/<int:pk>/", CategoryDetailView.as_view(), name="category_detail"),
    path("nominees/", NomineeListCreateView.as_view(), name="nominee_list"),
    path("nominees/<int:pk>/approve/", NomineeApproveView.as_view(), name="nominee_approve"),
    path("nominees/<int:pk>/reject/", NomineeRejectView.as_view(), name="nominee_reject"),
    path("nominees/<int:pk>/disqualify/", NomineeDisqualifyView.as_view(), name="nominee_disqualify"),
]
