"""Builder score calculation"""
from dataclasses import dataclass
from typing import Optional

ETHOS_MAX_SCORE = 2800

@dataclass
class ScoreBreakdown:
    """Detailed breakdown of the builder score"""
    shipped_points: float
    engagement_points: float
    topic_points: float
    talent_points: float
    ethos_points: float
    total_points: int

class BuilderScorer:
    """Calculates the 0-100 builder score stored on a Builder ID"""

    def ethos_score_to_percent(self, score: int) -> int:
        """Convert Ethos score (0-2800) to percentage (0-100)"""
        return round(score / ETHOS_MAX_SCORE * 100)

    def calculate(self, shipped_count: int, total_engagement: int, topic_count: int,
                  talent_score: Optional[float] = None,
                  ethos_score: Optional[int] = None) -> ScoreBreakdown:
        shipped_points = shipped_count * 10
        engagement_points = total_engagement * 0.5
        topic_points = topic_count * 5
        talent_points = talent_score * 0.2 if talent_score else 0
        ethos_points = self.ethos_score_to_percent(ethos_score) * 0.1 if ethos_score else 0

        raw = shipped_points + engagement_points + topic_points + talent_points + ethos_points
        return ScoreBreakdown(
            shipped_points=shipped_points,
            engagement_points=engagement_points,
            topic_points=topic_points,
            talent_points=talent_points,
            ethos_points=ethos_points,
            total_points=min(100, round(raw)),
        )
