"""
Quality Scoring Module

Weighted 0-100 listing quality scores with per-factor breakdowns,
persisted configuration, and admin-applied manual boosts.
"""

from directory.quality.analysis import QualityAnalyzer
from directory.quality.boosts import BoostManager
from directory.quality.config import QualityScoringConfig, load_config, save_config
from directory.quality.scorer import (
    QualityScorer,
    QualityScoreResult,
    quality_level,
    quality_stats,
)

__all__ = [
    "BoostManager",
    "QualityAnalyzer",
    "QualityScoringConfig",
    "load_config",
    "save_config",
    "QualityScorer",
    "QualityScoreResult",
    "quality_level",
    "quality_stats",
]
