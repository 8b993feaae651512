"""Fixr worker API integration for Builder ID claim records"""
import logging
import time
from typing import Any, Dict, List, Optional

import requests
from pydantic import ValidationError

from fixr_builder_id.errors import ClaimError, ClaimErrorCode
from fixr_builder_id.models.claim import BuilderIDRecord, SaveResult
from fixr_builder_id.services.storage import ClaimRecordStore, clamp_limit

logger = logging.getLogger(__name__)

class FixrClaimClient(ClaimRecordStore):
    """Claim record store backed by the Fixr worker's builder-id endpoints"""

    def __init__(self, base_url: str, timeout: float = 15.0,
                 session: Optional[requests.Session] = None, retry_delay: float = 1.0):
        self.base_url = f"{base_url.rstrip('/')}/api/builder-id"
        self.timeout = timeout
        self.retry_delay = retry_delay
        self.http = session or requests.Session()

    def _make_request(self, method: str, endpoint: str, **kwargs) -> requests.Response:
        """Make request to the Fixr API with retries on transport errors and 5xx"""
        headers = {'Accept': 'application/json'}

        for attempt in range(3):  # 3 retries
            try:
                response = self.http.request(
                    method,
                    f'{self.base_url}/{endpoint}',
                    headers=headers,
                    timeout=self.timeout,
                    **kwargs
                )
                if response.status_code >= 500:
                    response.raise_for_status()
                return response
            except requests.RequestException as e:
                if attempt == 2:  # Last attempt
                    logger.error(f"Fixr API {method} {endpoint} failed: {e}")
                    raise ClaimError(ClaimErrorCode.STORAGE_UNAVAILABLE)
                logger.warning(f"Retrying request after error: {e}")
                time.sleep(self.retry_delay)

    @staticmethod
    def _json(response: requests.Response) -> Dict[str, Any]:
        try:
            payload = response.json()
        except ValueError:
            logger.error(f"Fixr API returned non-JSON body (status {response.status_code})")
            raise ClaimError(ClaimErrorCode.STORAGE_UNAVAILABLE)
        if not isinstance(payload, dict):
            raise ClaimError(ClaimErrorCode.STORAGE_UNAVAILABLE)
        return payload

    @staticmethod
    def _to_record(payload: Any) -> BuilderIDRecord:
        try:
            return BuilderIDRecord.model_validate(payload)
        except ValidationError as e:
            logger.error(f"Fixr API returned a malformed Builder ID record: {e}")
            raise ClaimError(ClaimErrorCode.STORAGE_UNAVAILABLE)

    def get_by_fid(self, fid: int) -> Optional[BuilderIDRecord]:
        response = self._make_request('GET', f'check/{fid}')
        if response.status_code == 404:
            return None
        if not response.ok:
            logger.error(f"Fixr API check failed for FID {fid}: {response.status_code}")
            raise ClaimError(ClaimErrorCode.STORAGE_UNAVAILABLE)

        data = self._json(response)
        if not data.get('hasMinted') or not data.get('record'):
            return None
        return self._to_record(data['record'])

    def save(self, record: BuilderIDRecord) -> SaveResult:
        response = self._make_request('POST', 'claim', json=record.to_wire())
        if response.status_code == 409:
            return SaveResult(success=False, error=ClaimErrorCode.DUPLICATE_CLAIM)
        if not response.ok:
            logger.error(f"Failed to save Builder ID record: {response.status_code} {response.text}")
            raise ClaimError(ClaimErrorCode.STORAGE_UNAVAILABLE)

        data = self._json(response)
        if data.get('success', True):
            return SaveResult(success=True)
        error = str(data.get('error', ''))
        if 'already' in error.lower():
            return SaveResult(success=False, error=ClaimErrorCode.DUPLICATE_CLAIM)
        logger.error(f"Fixr API rejected Builder ID record for FID {record.fid}: {error}")
        raise ClaimError(ClaimErrorCode.STORAGE_UNAVAILABLE)

    def list_holders(self, limit: int = 20, offset: int = 0) -> List[BuilderIDRecord]:
        response = self._make_request(
            'GET', 'holders', params={'limit': clamp_limit(limit), 'offset': max(0, int(offset))}
        )
        if not response.ok:
            raise ClaimError(ClaimErrorCode.STORAGE_UNAVAILABLE)
        holders = self._json(response).get('holders') or []
        return [self._to_record(holder) for holder in holders]

    def count(self) -> int:
        response = self._make_request('GET', 'info')
        if not response.ok:
            raise ClaimError(ClaimErrorCode.STORAGE_UNAVAILABLE)
        return int(self._json(response).get('totalMinted') or 0)
