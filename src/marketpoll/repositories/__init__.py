"""Repositories for the MarketPoll SQL store."""
