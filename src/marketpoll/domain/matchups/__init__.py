"""Matchup selection."""

from marketpoll.domain.matchups.picker import MatchupBucket, pick_random_offset, pick_weighted_bucket

__all__ = ["MatchupBucket", "pick_random_offset", "pick_weighted_bucket"]
