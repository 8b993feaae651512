"""Builder reputation snapshot: shipped casts, Talent Protocol and Ethos"""
import logging
from collections import Counter
from typing import Any, Dict, Optional, Tuple

import httpx

from fixr_builder_id.config import Settings
from fixr_builder_id.models.profile import BuilderStats
from fixr_builder_id.scoring import BuilderScorer

logger = logging.getLogger(__name__)

class BuilderStatsService:
    """
    Collects the advisory stats frozen into a Builder ID at mint time.

    Each source fails independently to empty values; nothing here can block
    a claim.
    """

    def __init__(self, supabase_url: Optional[str] = None, supabase_key: Optional[str] = None,
                 talent_api_key: Optional[str] = None,
                 ethos_api_url: str = "https://api.ethos.network/api/v2",
                 ethos_client: str = "fixr-shipyard", timeout: float = 15.0,
                 client: Optional[httpx.AsyncClient] = None):
        self.supabase_url = supabase_url.rstrip('/') if supabase_url else None
        self.supabase_key = supabase_key
        self.talent_api_key = talent_api_key
        self.ethos_api_url = ethos_api_url.rstrip('/')
        self.ethos_client = ethos_client
        self.scorer = BuilderScorer()
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=10.0))

    @classmethod
    def from_settings(cls, settings: Settings) -> 'BuilderStatsService':
        return cls(
            supabase_url=settings.SUPABASE_URL,
            supabase_key=settings.SUPABASE_SERVICE_KEY,
            talent_api_key=settings.TALENT_PROTOCOL_API_KEY,
            ethos_api_url=settings.ETHOS_API_URL,
            ethos_client=settings.ETHOS_CLIENT,
            timeout=settings.HTTP_TIMEOUT,
        )

    async def _get_json(self, url: str, headers: Dict[str, str],
                        params: Optional[Dict[str, str]] = None) -> Optional[Any]:
        try:
            response = await self._client.get(url, headers=headers, params=params)
        except httpx.HTTPError as e:
            logger.error(f"Stats request to {url} failed: {e}")
            return None
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            logger.error(f"Stats request to {url} returned {response.status_code}")
            return None
        try:
            return response.json()
        except ValueError:
            logger.error(f"Stats request to {url} returned malformed JSON")
            return None

    async def fetch_shipped(self, fid: int) -> Tuple[int, int, list]:
        """Shipped count, total engagement and top 3 topics from builder_casts"""
        if not self.supabase_url or not self.supabase_key:
            return 0, 0, []

        casts = await self._get_json(
            f"{self.supabase_url}/rest/v1/builder_casts",
            headers={
                'apikey': self.supabase_key,
                'Authorization': f'Bearer {self.supabase_key}',
            },
            params={
                'author_fid': f'eq.{fid}',
                'category': 'eq.shipped',
                'select': 'id,topics,likes,recasts',
            },
        )
        if not isinstance(casts, list):
            return 0, 0, []

        engagement = 0
        topics = Counter()
        for cast in casts:
            if not isinstance(cast, dict):
                continue
            engagement += int(cast.get('likes') or 0) + int(cast.get('recasts') or 0)
            topics.update(topic for topic in cast.get('topics') or [] if isinstance(topic, str))

        return len(casts), engagement, [topic for topic, _ in topics.most_common(3)]

    async def fetch_talent_score(self, fid: int) -> Optional[float]:
        if not self.talent_api_key:
            return None
        data = await self._get_json(
            "https://api.talentprotocol.com/api/v2/passports",
            headers={'X-API-KEY': self.talent_api_key},
            params={'filter[farcaster_id]': str(fid)},
        )
        passports = data.get('passports') if isinstance(data, dict) else None
        if not passports or not isinstance(passports[0], dict):
            return None
        score = passports[0].get('score')
        return float(score) if isinstance(score, (int, float)) else None

    async def fetch_ethos(self, fid: int) -> Tuple[Optional[int], Optional[str]]:
        """Ethos credibility score (0-2800) and level for a Farcaster FID"""
        user = await self._get_json(
            f"{self.ethos_api_url}/user/by/farcaster/{fid}",
            headers={'X-Ethos-Client': self.ethos_client},
        )
        if not isinstance(user, dict) or not isinstance(user.get('score'), (int, float)):
            return None, None
        logger.info(f"Ethos score for FID {fid}: {user['score']} ({user.get('level')})")
        return int(user['score']), user.get('level')

    async def fetch_stats(self, fid: int) -> BuilderStats:
        shipped_count, engagement, topics = await self.fetch_shipped(fid)
        talent_score = await self.fetch_talent_score(fid)
        ethos_score, ethos_level = await self.fetch_ethos(fid)

        breakdown = self.scorer.calculate(
            shipped_count, engagement, len(topics),
            talent_score=talent_score, ethos_score=ethos_score
        )
        return BuilderStats(
            shipped_count=shipped_count,
            total_engagement=engagement,
            top_topics=topics,
            builder_score=breakdown.total_points,
            talent_score=talent_score,
            ethos_score=ethos_score,
            ethos_level=ethos_level,
        )

    async def aclose(self) -> None:
        await self._client.aclose()
