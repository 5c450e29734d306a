from django.urls import path

from .views import (
    CategoryStatsView,
    LeaderboardView,
    MyVotesView,
    NomineeStatsView,
    VoteFlagView,
    VoteUnflagView,
)

urlpatterns = [
    path("mine/", MyVotesView.as_view(), name="votes_mine"),
    path("leaderboard/", LeaderboardView.as_view(), name="votes_leaderboard"),
    path("nominees/<int:pk>/stats/", NomineeStatsView.as_view(), name="votes_nominee_stats"),
    path("categories/<int:pk>/stats/", CategoryStatsView.as_view(), name="votes_category_stats"),
    path("<int:pk>/flag/", VoteFlagView.as_view(), name="votes_flag"),
    path("<int:pk>/unflag/", VoteUnflagView.as_view(), name="votes_unflag"),
]
