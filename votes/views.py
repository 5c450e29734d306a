from django.shortcuts import get_object_or_404
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import generics
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from nominations.models import Category, Nominee
from payments.services import clear_vote_flag, flag_vote
from users.permissions import IsAdminRole

from .models import Vote
from .serializers import AdminVoteSerializer, FlagSerializer, UnflagSerializer, VoteSerializer
from .statistics import category_statistics, leaderboard, nominee_statistics

MAX_LEADERBOARD = 100


class MyVotesView(generics.ListAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = VoteSerializer
    filterset_fields = ["category", "status"]
    ordering_fields = ["created"]

    def get_queryset(self):
        return Vote.objects.filter(voter=self.request.user).select_related("nominee__student", "category")


class LeaderboardView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(parameters=[OpenApiParameter("category", int), OpenApiParameter("limit", int)])
    def get(self, request):
        category = request.query_params.get("category")
        try:
            limit = min(int(request.query_params.get("limit", 50)), MAX_LEADERBOARD)
            category = int(category) if category else None
        except ValueError:
            return Response({"detail": "category and limit must be integers"}, status=400)
        return Response({"results": leaderboard(category_id=category, limit=max(limit, 1))})


class NomineeStatsView(APIView):
    permission_classes = [AllowAny]

    def get(self, request, pk: int):
        nominee = get_object_or_404(Nominee, pk=pk)
        return Response({"nominee_id": nominee.pk, "rank": nominee.rank, **nominee_statistics(nominee.pk)})


class CategoryStatsView(APIView):
    permission_classes = [AllowAny]

    def get(self, request, pk: int):
        get_object_or_404(Category, pk=pk)
        return Response(category_statistics(pk))


class VoteFlagView(APIView):
    permission_classes = [IsAdminRole]

    @extend_schema(request=FlagSerializer, responses={200: AdminVoteSerializer})
    def post(self, request, pk: int):
        get_object_or_404(Vote, pk=pk)
        ser = FlagSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        vote = flag_vote(pk, ser.validated_data["reason"], request.user, score=ser.validated_data.get("score"))
        return Response(AdminVoteSerializer(vote).data)


class VoteUnflagView(APIView):
    permission_classes = [IsAdminRole]

    @extend_schema(request=UnflagSerializer, responses={200: AdminVoteSerializer})
    def post(self, request, pk: int):
        get_object_or_404(Vote, pk=pk)
        ser = UnflagSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        vote = clear_vote_flag(pk, request.user, notes=ser.validated_data.get("notes", ""))
        return Response(AdminVoteSerializer(vote).data)
