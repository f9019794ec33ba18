"""Domain logic: seed catalog, pair generation, ratings, matchups and votes."""
