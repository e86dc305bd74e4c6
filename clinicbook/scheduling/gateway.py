"""Client for the remote booking and payment functions.

Every call goes out on the primary channel first. Only a transport failure
(unreachable host, timeout, 5xx or an unreadable body) sends the call once
more on the fallback channel; a 4xx answer is a business rejection and is
returned to the caller as ``FunctionRejected`` without a retry.
"""

import logging
from typing import Any
from urllib.parse import urlparse

import httpx

from clinicbook.core import config
from clinicbook.scheduling.errors import FunctionRejected, TransportFailure

logger = logging.getLogger(__name__)

CREATE_BOOKING = 'create-booking'
CREATE_PAYFAST_PAYMENT = 'create-payfast-payment'


def derive_fallback_url(base_url: str, name: str) -> str:
    """``https://<ref>.example.co`` becomes ``https://<ref>.functions.example.co/<name>``."""
    parsed = urlparse(base_url)
    host = parsed.hostname or ''
    project_ref, separator, domain = host.partition('.')
    if not separator:
        # Single-label hosts (localhost) have no project ref to split off.
        netloc = parsed.netloc
        return f'{parsed.scheme or "https"}://{netloc}/functions/{name}'

    return f'https://{project_ref}.functions.{domain}/{name}'


class FunctionGateway:
    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = (base_url or config.FUNCTIONS_BASE_URL).rstrip('/')
        self.api_key = config.FUNCTIONS_API_KEY if api_key is None else api_key
        self._client = httpx.Client(
            timeout=timeout or config.FUNCTIONS_TIMEOUT_SECONDS,
            transport=transport,
        )

    def primary_url(self, name: str) -> str:
        return f'{self.base_url}/functions/v1/{name}'

    def fallback_url(self, name: str) -> str:
        return derive_fallback_url(self.base_url, name)

    def invoke(self, name: str, body: dict[str, Any] | None = None, access_token: str | None = None) -> dict[str, Any]:
        primary_headers = {'Content-Type': 'application/json'}
        if self.api_key:
            primary_headers['apikey'] = self.api_key
        bearer = access_token or self.api_key
        if bearer:
            primary_headers['Authorization'] = f'Bearer {bearer}'

        try:
            return self._post(name, self.primary_url(name), body, primary_headers)
        except TransportFailure as primary_error:
            logger.warning('Function %s failed on primary channel (%s); trying fallback', name, primary_error)

        fallback_headers = {'Content-Type': 'application/json'}
        if access_token:
            fallback_headers['Authorization'] = f'Bearer {access_token}'

        try:
            return self._post(name, self.fallback_url(name), body, fallback_headers)
        except TransportFailure as fallback_error:
            logger.error('Function %s failed on fallback channel (%s)', name, fallback_error)
            raise TransportFailure(f'Function {name} unreachable on primary and fallback channels') from fallback_error

    def _post(self, name: str, url: str, body: dict[str, Any] | None, headers: dict[str, str]) -> dict[str, Any]:
        try:
            response = self._client.post(url, json=body, headers=headers)
        except httpx.HTTPError as exc:
            raise TransportFailure(f'Function {name} request error: {exc}') from exc

        if response.status_code >= 500:
            raise TransportFailure(f'Function {name} failed: {response.status_code} {response.reason_phrase}')

        try:
            payload = response.json()
        except ValueError as exc:
            if response.status_code >= 400:
                raise FunctionRejected(response.text or None, status_code=response.status_code) from exc
            raise TransportFailure(f'Function {name} returned a non-JSON body') from exc

        if response.status_code >= 400:
            details = payload if isinstance(payload, dict) else {}
            error = details.get('error') or details.get('detail')
            raise FunctionRejected(
                str(error) if error else None,
                status_code=response.status_code,
                code=details.get('code'),
            )

        if not isinstance(payload, dict):
            raise TransportFailure(f'Function {name} returned an unexpected body')
        return payload

    def create_booking(self, payload: dict[str, Any], access_token: str | None = None) -> dict[str, Any]:
        data = self.invoke(CREATE_BOOKING, payload, access_token)
        if not data.get('success') or not data.get('booking'):
            raise FunctionRejected(data.get('error') or 'Failed to create booking', code=data.get('code'))
        return data['booking']

    def create_payfast_payment(self, payload: dict[str, Any], access_token: str | None = None) -> str:
        data = self.invoke(CREATE_PAYFAST_PAYMENT, payload, access_token)
        if not data.get('success') or not data.get('payment_url'):
            raise FunctionRejected(data.get('error') or 'Payment initialization failed', code=data.get('code'))
        return data['payment_url']

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> 'FunctionGateway':
        return self

    def __exit__(self, exc_type, exc, traceback) -> None:
        self.close()
