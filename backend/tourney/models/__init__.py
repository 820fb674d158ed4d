from tourney.models.match import BracketLocation, BracketType, Match, MatchStatus
from tourney.models.standing import Standing
from tourney.models.team import PaymentStatus, Team, TeamRegistration
from tourney.models.tournament import Gender, LevelOfCompetition, Tournament, TournamentFormat, TournamentStatus

__all__ = [
    "Tournament",
    "TournamentFormat",
    "TournamentStatus",
    "LevelOfCompetition",
    "Gender",
    "Match",
    "MatchStatus",
    "BracketType",
    "BracketLocation",
    "Standing",
    "Team",
    "TeamRegistration",
    "PaymentStatus",
]
