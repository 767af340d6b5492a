"""
Broadcast enrichment for Matchday.
Scrapes a broadcast guide page, normalizes team and venue names, and
correlates the scraped records with authoritative fixtures.
"""
from broadcast.correlator import MatchCorrelator
from broadcast.normalizer import clean_team_name, normalize, normalize_venue
from broadcast.service import BroadcastService

__all__ = [
    "BroadcastService",
    "MatchCorrelator",
    "clean_team_name",
    "normalize",
    "normalize_venue",
]
