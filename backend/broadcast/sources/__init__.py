from broadcast.sources.base import CandidateSource, StaticCandidateSource
from broadcast.sources.guide import ProxiedPageSource

__all__ = [
    "CandidateSource",
    "ProxiedPageSource",
    "StaticCandidateSource",
]
