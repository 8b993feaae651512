"""Builder ID token metadata generation and publishing"""
import json
import logging
from datetime import date
from typing import Any, Dict, List, Optional

import boto3

from fixr_builder_id.config import S3Settings
from fixr_builder_id.models.profile import BuilderProfile, BuilderStats

logger = logging.getLogger(__name__)

OG_BUILDER_MAX_FID = 10000

def build_metadata(profile: BuilderProfile, stats: BuilderStats, image_url: str,
                   token_id: Optional[int] = None, minted_on: Optional[date] = None) -> Dict[str, Any]:
    """ERC-721 metadata for a Builder ID, using the stats captured at mint time"""
    attributes: List[Dict[str, Any]] = [
        {'trait_type': 'FID', 'value': profile.fid, 'display_type': 'number'},
        {'trait_type': 'Username', 'value': f'@{profile.username}'},
        {'trait_type': 'Shipped Projects', 'value': stats.shipped_count, 'display_type': 'number'},
        {'trait_type': 'Builder Score', 'value': stats.builder_score or 0, 'display_type': 'number'},
        {'trait_type': 'Total Engagement', 'value': stats.total_engagement, 'display_type': 'number'},
        {'trait_type': 'Followers', 'value': profile.follower_count, 'display_type': 'number'},
    ]

    if profile.fid < OG_BUILDER_MAX_FID:
        attributes.append({'trait_type': 'OG Builder', 'value': 'Yes'})
    if profile.power_badge:
        attributes.append({'trait_type': 'Power Badge', 'value': 'Yes'})
    if profile.neynar_score is not None:
        attributes.append({'trait_type': 'Neynar Score', 'value': round(profile.neynar_score * 100), 'display_type': 'number'})
    if stats.talent_score:
        attributes.append({'trait_type': 'Talent Score', 'value': stats.talent_score, 'display_type': 'number'})
    if stats.ethos_score is not None:
        attributes.append({'trait_type': 'Ethos Score', 'value': stats.ethos_score, 'display_type': 'number'})
        if stats.ethos_level:
            attributes.append({'trait_type': 'Ethos Level', 'value': stats.ethos_level})
    for index, topic in enumerate(stats.top_topics, start=1):
        attributes.append({'trait_type': f'Skill {index}', 'value': topic})
    attributes.append({'trait_type': 'Minted', 'value': (minted_on or date.today()).isoformat()})

    scores = [f'Builder Score: {stats.builder_score or 0}/100']
    if profile.neynar_score is not None:
        scores.append(f'Neynar: {round(profile.neynar_score * 100)}%')
    if stats.talent_score:
        scores.append(f'Talent: {stats.talent_score}')
    if stats.ethos_score is not None:
        scores.append(f'Ethos: {stats.ethos_score}')

    description = (
        f"Builder ID for @{profile.username} (FID: {profile.fid}). "
        f"{stats.shipped_count} shipped projects. {' | '.join(scores)}. "
        f"{'Power Badge holder. ' if profile.power_badge else ''}"
        "This soulbound NFT represents verified builder identity in the Farcaster ecosystem."
    )

    return {
        'name': f'Builder ID #{token_id if token_id is not None else profile.fid}',
        'description': description,
        'image': image_url,
        'external_url': f'https://farcaster.xyz/{profile.username}',
        'attributes': attributes,
    }

class MetadataPublisher:
    """Uploads metadata JSON to an S3-compatible bucket"""

    def __init__(self, s3_settings: S3Settings, s3_client=None):
        self.settings = s3_settings
        self.s3_client = s3_client or boto3.client(
            's3',
            region_name=s3_settings.region,
            endpoint_url=s3_settings.endpoint_url,
        )

    def object_key(self, fid: int) -> str:
        return f'builder-id/{fid}.json'

    def public_url(self, key: str) -> str:
        if self.settings.public_base_url:
            return f'{self.settings.public_base_url.rstrip("/")}/{key}'
        return f'https://{self.settings.bucket}.s3.{self.settings.region}.amazonaws.com/{key}'

    def publish(self, fid: int, metadata: Dict[str, Any]) -> str:
        key = self.object_key(fid)
        try:
            self.s3_client.put_object(
                Bucket=self.settings.bucket,
                Key=key,
                Body=json.dumps(metadata, ensure_ascii=False).encode('utf-8'),
                ContentType='application/json',
                ACL='public-read'
            )
        except Exception as e:
            logger.error(f"Error uploading metadata for FID {fid}: {e}")
            raise
        url = self.public_url(key)
        logger.info(f"Successfully uploaded metadata to s3://{self.settings.bucket}/{key}")
        return url
