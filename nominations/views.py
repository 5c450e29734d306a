from django.shortcuts import get_object_or_404
from rest_framework import generics, status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import extend_schema

from users.permissions import IsAdminRole

from .models import Category, Nominee
from .serializers import CategorySerializer, DisqualifySerializer, NomineeSerializer, ReviewSerializer
from .services import NominationError, disqualify_nominee, review_nominee


class CategoryListView(generics.ListAPIView):
    permission_classes = [AllowAny]
    serializer_class = CategorySerializer
    queryset = Category.objects.filter(is_active=True)
    filterset_fields = ["featured"]
    search_fields = ["name", "description"]
    ordering_fields = ["display_order", "name", "voting_start"]


class CategoryDetailView(generics.RetrieveAPIView):
    permission_classes = [AllowAny]
    serializer_class = CategorySerializer
    queryset = Category.objects.all()


class NomineeListCreateView(generics.ListCreateAPIView):
    """Public list of approved nominees; authenticated users may submit nominations."""

    serializer_class = NomineeSerializer
    filterset_fields = ["category", "status"]
    search_fields = ["student__first_name", "student__last_name", "nomination_reason"]
    ordering_fields = ["rank", "total_votes", "created"]

    def get_permissions(self):
        if self.request.method == "GET":
            return [AllowAny()]
        return [IsAuthenticated()]

    def get_queryset(self):
        qs = Nominee.objects.select_related("student", "category")
        user = self.request.user
        if not (user.is_authenticated and user.is_admin):
            qs = qs.filter(status=Nominee.STATUS_APPROVED, is_active=True, is_disqualified=False)
        return qs

    def perform_create(self, serializer):
        serializer.save(nominated_by=self.request.user)


class _AdminNomineeAction(APIView):
    permission_classes = [IsAdminRole]


@extend_schema(request=ReviewSerializer, responses={200: NomineeSerializer})
class NomineeApproveView(_AdminNomineeAction):
    approve = True

    def post(self, request, pk: int):
        get_object_or_404(Nominee, pk=pk)
        ser = ReviewSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        try:
            nominee = review_nominee(pk, approve=self.approve, actor=request.user,
                                     notes=ser.validated_data.get("notes", ""))
        except NominationError as e:
            return Response({"detail": str(e)}, status=status.HTTP_409_CONFLICT)
        return Response(NomineeSerializer(nominee).data)


class NomineeRejectView(NomineeApproveView):
    approve = False


@extend_schema(request=DisqualifySerializer, responses={200: NomineeSerializer})
class NomineeDisqualifyView(_AdminNomineeAction):
    def post(self, request, pk: int):
        get_object_or_404(Nominee, pk=pk)
        ser = DisqualifySerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        nominee = disqualify_nominee(pk, reason=ser.validated_data["reason"], actor=request.user)
        return Response(NomineeSerializer(nominee).data)
