import json
from datetime import date
from unittest.mock import MagicMock

import pytest

from fixr_builder_id.config import S3Settings
from fixr_builder_id.models.profile import BuilderStats
from fixr_builder_id.services.metadata import MetadataPublisher, build_metadata

@pytest.fixture
def stats():
    return BuilderStats(
        shipped_count=3,
        total_engagement=40,
        top_topics=['defi', 'frames'],
        builder_score=55,
        talent_score=81.0,
        ethos_score=1400,
        ethos_level='Known',
    )

def traits(metadata):
    return {attribute['trait_type']: attribute['value'] for attribute in metadata['attributes']}

def test_metadata_attributes(profile, stats):
    metadata = build_metadata(profile, stats, "https://img.test/1234.png", minted_on=date(2025, 6, 1))

    assert metadata['name'] == 'Builder ID #1234'
    assert metadata['image'] == "https://img.test/1234.png"
    assert metadata['external_url'] == 'https://farcaster.xyz/alice'
    assert traits(metadata) == {
        'FID': 1234,
        'Username': '@alice',
        'Shipped Projects': 3,
        'Builder Score': 55,
        'Total Engagement': 40,
        'Followers': 420,
        'OG Builder': 'Yes',
        'Power Badge': 'Yes',
        'Neynar Score': 87,
        'Talent Score': 81.0,
        'Ethos Score': 1400,
        'Ethos Level': 'Known',
        'Skill 1': 'defi',
        'Skill 2': 'frames',
        'Minted': '2025-06-01',
    }
    assert 'Power Badge holder.' in metadata['description']

def test_metadata_for_new_builder_without_stats(profile_factory):
    profile = profile_factory(fid=123456, username='newbie')

    metadata = build_metadata(profile, BuilderStats(), "", token_id=7)

    assert metadata['name'] == 'Builder ID #7'
    assert 'OG Builder' not in traits(metadata)
    assert 'Power Badge' not in traits(metadata)
    assert 'Ethos Score' not in traits(metadata)
    assert traits(metadata)['Builder Score'] == 0

def test_publish_uploads_json():
    s3_client = MagicMock()
    publisher = MetadataPublisher(S3Settings(bucket='builder-ids', region='us-east-1'), s3_client=s3_client)

    url = publisher.publish(1234, {'name': 'Builder ID #1234'})

    assert url == 'https://builder-ids.s3.us-east-1.amazonaws.com/builder-id/1234.json'
    kwargs = s3_client.put_object.call_args.kwargs
    assert kwargs['Bucket'] == 'builder-ids'
    assert kwargs['Key'] == 'builder-id/1234.json'
    assert kwargs['ContentType'] == 'application/json'
    assert json.loads(kwargs['Body']) == {'name': 'Builder ID #1234'}

def test_publish_uses_public_base_url():
    publisher = MetadataPublisher(
        S3Settings(bucket='builder-ids', region='auto', public_base_url='https://meta.test/'),
        s3_client=MagicMock(),
    )

    assert publisher.publish(1, {}) == 'https://meta.test/builder-id/1.json'

def test_publish_errors_propagate():
    s3_client = MagicMock()
    s3_client.put_object.side_effect = RuntimeError("access denied")
    publisher = MetadataPublisher(S3Settings(bucket='builder-ids', region='us-east-1'), s3_client=s3_client)

    with pytest.raises(RuntimeError):
        publisher.publish(1234, {})
