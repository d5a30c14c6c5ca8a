"""ORM model registry: import all models so Alembic autogenerate discovers them."""

from campus_vote.models.base import Base
from campus_vote.models.candidate import Candidate
from campus_vote.models.election import Election, ElectionCandidate
from campus_vote.models.user import User
from campus_vote.models.vote_participation import VoteParticipation

__all__ = [
    "Base",
    "Candidate",
    "Election",
    "ElectionCandidate",
    "User",
    "VoteParticipation",
]
