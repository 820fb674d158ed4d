import os

# Point the app engine at memory before tourney.config is first imported
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from tourney.models.match import Match  # noqa: E402, F401
from tourney.models.standing import Standing  # noqa: E402, F401
from tourney.models.team import Team, TeamRegistration  # noqa: E402, F401
from tourney.models.tournament import Tournament  # noqa: E402, F401
