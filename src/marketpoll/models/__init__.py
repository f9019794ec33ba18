"""ORM models."""

from marketpoll.models.asset import Asset
from marketpoll.models.asset_score import AssetScore
from marketpoll.models.base import Base
from marketpoll.models.ingestion_cursor import IngestionCursor
from marketpoll.models.vote_event import VoteEvent, VoteSide, VoteSource
from marketpoll.models.voter import Voter
from marketpoll.models.voting_pair import VotingPair

__all__ = [
    "Asset",
    "AssetScore",
    "Base",
    "IngestionCursor",
    "VoteEvent",
    "VoteSide",
    "VoteSource",
    "Voter",
    "VotingPair",
]
