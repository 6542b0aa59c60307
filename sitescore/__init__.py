"""Concurrent site fetching and suffix-array based content scoring."""

from .config import Config, ScoringPolicy
from .errors import ConfigError, DecodeError, FetchError, IndexBuildError, SiteScoreError
from .fetch import FetchPipeline
from .models import SENTINEL, ContentKind, Corpus, Document, Match, ScoreRecord, Span, UrlOutcome, UrlState
from .normalize import NormalizePolicy, normalize
from .report import RunReport, score_sites, write_csv, write_json
from .scoring import Scorer
from .suffix_array import SuffixArrayIndex, build

__version__ = "0.1.0"

__all__ = [
    "SENTINEL",
    "Config",
    "ConfigError",
    "ContentKind",
    "Corpus",
    "DecodeError",
    "Document",
    "FetchError",
    "FetchPipeline",
    "IndexBuildError",
    "Match",
    "NormalizePolicy",
    "RunReport",
    "ScoreRecord",
    "Scorer",
    "ScoringPolicy",
    "SiteScoreError",
    "Span",
    "SuffixArrayIndex",
    "UrlOutcome",
    "UrlState",
    "build",
    "normalize",
    "score_sites",
    "write_csv",
    "write_json",
]
