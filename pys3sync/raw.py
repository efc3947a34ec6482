"""Signed raw requests against the object store HTTP API."""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

import httpx
from botocore.auth import S3SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.credentials import Credentials

from .config import S3Settings
from .exceptions import S3ConfigError, S3NetworkError
from .utils import DEFAULT_REGION

logger = logging.getLogger(__name__)


def parse_header(value: str) -> tuple[str, str]:
    """Split a ``Name: value`` header argument.

    Raises:
        ValueError: If the header has no colon
    """
    if ":" not in value:
        raise ValueError(f"Invalid header (expected 'Name: value'): {value}")
    name, _, header_value = value.partition(":")
    return name.strip(), header_value.strip()


def sign_request(
    method: str,
    url: str,
    settings: S3Settings,
    headers: Optional[dict[str, str]] = None,
    body: bytes = b"",
) -> dict[str, str]:
    """Compute SigV4 headers for a request.

    Args:
        method: HTTP method
        url: Full request URL
        settings: Settings holding the credentials and region
        headers: Extra request headers to sign
        body: Request body

    Returns:
        Headers to send, including Authorization and x-amz-* headers

    Raises:
        S3ConfigError: If no credentials are configured
    """
    if not settings.has_credentials:
        raise S3ConfigError(
            "Credentials not configured. Set AWS_ACCESS_KEY_ID and "
            "AWS_SECRET_ACCESS_KEY or use a credential file."
        )
    credentials = Credentials(settings.access_key, settings.secret_key)
    request = AWSRequest(method=method.upper(), url=url, data=body, headers=headers or {})
    S3SigV4Auth(credentials, "s3", settings.region or DEFAULT_REGION).add_auth(request)
    return dict(request.headers.items())


@contextmanager
def signed_request(
    method: str,
    url: str,
    settings: S3Settings,
    headers: Optional[dict[str, str]] = None,
    body: Optional[bytes] = None,
    timeout: float = 60.0,
) -> Iterator[tuple[dict[str, str], httpx.Response]]:
    """Sign and send a request, yielding the streamed response.

    Examples:
        >>> with signed_request("GET", url, settings) as (sent, response):
        ...     for chunk in response.iter_bytes():
        ...         sys.stdout.buffer.write(chunk)

    Yields:
        Tuple of (signed request headers, open streaming response)

    Raises:
        S3NetworkError: If the endpoint cannot be reached
    """
    payload = body or b""
    signed_headers = sign_request(method, url, settings, headers, payload)
    logger.debug(f"Sending signed {method.upper()} {url}")
    with httpx.Client(timeout=httpx.Timeout(timeout)) as client:
        try:
            with client.stream(
                method.upper(), url, headers=signed_headers, content=payload or None
            ) as response:
                yield signed_headers, response
        except httpx.TransportError as e:
            raise S3NetworkError(f"Request to {url} failed: {e}") from e
