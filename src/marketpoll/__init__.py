"""MarketPoll: pairwise asset voting with team-aware Elo ratings."""

__version__ = "0.1.0"
