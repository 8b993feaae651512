from unittest.mock import MagicMock

import pytest
import requests

from fixr_builder_id.errors import ClaimError, ClaimErrorCode
from fixr_builder_id.models.claim import BuilderIDRecord, ClaimState
from fixr_builder_id.orchestrator import ClaimOrchestrator
from fixr_builder_id.services.fixr_api import FixrClaimClient

from conftest import TX_HASH, VERIFIED_WALLET

def response(status_code=200, payload=None):
    resp = MagicMock(spec=requests.Response)
    resp.status_code = status_code
    resp.ok = status_code < 400
    resp.text = ''
    resp.json.return_value = payload
    if status_code >= 500:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status_code} Server Error")
    return resp

def make_client(*responses):
    session = MagicMock(spec=requests.Session)
    session.request.side_effect = list(responses)
    return FixrClaimClient("https://fixr.test/", session=session, retry_delay=0), session

RECORD = BuilderIDRecord(fid=1234, username="alice", wallet_address=VERIFIED_WALLET.lower(), tx_hash=TX_HASH)

def test_get_by_fid_returns_record():
    client, session = make_client(response(200, {'hasMinted': True, 'record': RECORD.to_client()}))

    assert client.get_by_fid(1234) == RECORD
    method, url = session.request.call_args.args
    assert (method, url) == ('GET', 'https://fixr.test/api/builder-id/check/1234')

def test_get_by_fid_not_minted():
    client, _ = make_client(response(200, {'hasMinted': False}))

    assert client.get_by_fid(1234) is None

def test_get_by_fid_404_is_none():
    client, _ = make_client(response(404, {'error': 'not found'}))

    assert client.get_by_fid(1234) is None

def test_server_errors_are_retried():
    client, session = make_client(response(502), response(200, {'hasMinted': True, 'record': RECORD.to_wire()}))

    assert client.get_by_fid(1234) == RECORD
    assert session.request.call_count == 2

def test_persistent_outage_is_storage_unavailable():
    client, session = make_client(
        requests.ConnectionError("refused"), requests.ConnectionError("refused"), requests.ConnectionError("refused")
    )

    with pytest.raises(ClaimError) as exc_info:
        client.get_by_fid(1234)

    assert exc_info.value.code == ClaimErrorCode.STORAGE_UNAVAILABLE
    assert session.request.call_count == 3

def test_save_posts_wire_record():
    client, session = make_client(response(200, {'success': True}))

    assert client.save(RECORD).success is True
    assert session.request.call_args.kwargs['json'] == RECORD.to_wire()

@pytest.mark.parametrize("resp", [
    response(409, {'error': 'Builder ID already claimed'}),
    response(200, {'success': False, 'error': 'FID already has a Builder ID'}),
])
def test_save_duplicate(resp):
    client, _ = make_client(resp)

    result = client.save(RECORD)

    assert result.success is False
    assert result.error == ClaimErrorCode.DUPLICATE_CLAIM

def test_save_rejection_is_storage_unavailable():
    client, _ = make_client(response(400, {'error': 'bad request'}))

    with pytest.raises(ClaimError) as exc_info:
        client.save(RECORD)

    assert exc_info.value.code == ClaimErrorCode.STORAGE_UNAVAILABLE

def test_list_holders_and_count():
    client, session = make_client(
        response(200, {'holders': [RECORD.to_client()]}),
        response(200, {'totalMinted': 42}),
    )

    assert client.list_holders(limit=500, offset=5) == [RECORD]
    assert session.request.call_args_list[0].kwargs['params'] == {'limit': 100, 'offset': 5}
    assert client.count() == 42

def test_null_urls_from_worker_read_as_blank():
    payload = dict(RECORD.to_client(), imageUrl=None, metadataUrl=None)
    client, _ = make_client(response(200, {'hasMinted': True, 'record': payload}))

    record = client.get_by_fid(1234)

    assert record.image_url == ''
    assert record.metadata_url == ''

def test_missing_mint_time_is_not_invented():
    payload = {'fid': 1234, 'username': 'alice', 'walletAddress': VERIFIED_WALLET.lower()}
    client, _ = make_client(response(200, {'hasMinted': True, 'record': payload}))

    assert client.get_by_fid(1234).minted_at is None

@pytest.mark.parametrize("payload", [
    {'fid': 'not-a-fid', 'username': 'alice', 'walletAddress': VERIFIED_WALLET.lower()},
    {'fid': 1234},
])
def test_malformed_record_is_storage_unavailable(payload):
    client, _ = make_client(
        response(200, {'hasMinted': True, 'record': payload}),
        response(200, {'holders': [payload]}),
    )

    with pytest.raises(ClaimError) as exc_info:
        client.get_by_fid(1234)
    assert exc_info.value.code == ClaimErrorCode.STORAGE_UNAVAILABLE

    with pytest.raises(ClaimError) as exc_info:
        client.list_holders()
    assert exc_info.value.code == ClaimErrorCode.STORAGE_UNAVAILABLE

@pytest.mark.asyncio
async def test_claim_check_against_worker_record_with_null_fields(identity, mint_builder, wallet):
    payload = dict(RECORD.to_client(), imageUrl=None, metadataUrl=None)
    client, _ = make_client(response(200, {'hasMinted': True, 'record': payload}))
    orchestrator = ClaimOrchestrator(identity, client, mint_builder, wallet)

    session = await orchestrator.start(1234, VERIFIED_WALLET)

    assert session.state == ClaimState.DONE
    assert session.record.fid == 1234
    identity.fetch_profile.assert_not_called()

@pytest.mark.asyncio
async def test_claim_check_against_malformed_worker_record_fails_retryable(identity, mint_builder, wallet):
    client, _ = make_client(response(200, {'hasMinted': True, 'record': {'fid': 1234}}))
    orchestrator = ClaimOrchestrator(identity, client, mint_builder, wallet)

    session = await orchestrator.start(1234, VERIFIED_WALLET)

    assert session.state == ClaimState.FAILED
    assert session.error.code == ClaimErrorCode.STORAGE_UNAVAILABLE
    assert session.error.retryable is True
