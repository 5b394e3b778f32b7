"""
AWS Signature Version 4 for Bedrock runtime requests.

The body is encoded once here and the same bytes are handed to the transport,
so the payload hash always matches what goes over the wire.
"""
import hashlib
import hmac
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qsl, quote, urlsplit

from ..exceptions import SerializationError
from ..transport.base import TransportConfig
from ..utils import without_null_fields

logger = logging.getLogger("aisdk.providers.bedrock")

ALGORITHM = "AWS4-HMAC-SHA256"
SERVICE = "bedrock"


class SigV4Credentials:
    def __init__(self, access_key_id: str, secret_access_key: str, session_token: Optional[str] = None):
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self.session_token = session_token

    def __repr__(self) -> str:
        return f"SigV4Credentials(access_key_id={self.access_key_id[:4]}***)"


def encode_body(body: Any, cfg: TransportConfig) -> bytes:
    """Same encoding HttpxTransport applies to JSON bodies."""
    if isinstance(body, (bytes, bytearray)):
        return bytes(body)
    if cfg.strip_null_fields:
        body = without_null_fields(body)
    try:
        return json.dumps(body, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise SerializationError(str(e)) from e


def _sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _hmac(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


def signing_key(secret: str, date_stamp: str, region: str, service: str = SERVICE) -> bytes:
    k_date = _hmac(f"AWS4{secret}".encode("utf-8"), date_stamp)
    k_region = _hmac(k_date, region)
    k_service = _hmac(k_region, service)
    return _hmac(k_service, "aws4_request")


def canonical_uri(path: str) -> str:
    # non-S3 services encode each segment twice; the path already carries one encoding
    return quote(path or "/", safe="/~")


def canonical_query(query: str) -> str:
    pairs = parse_qsl(query, keep_blank_values=True)
    encoded = sorted((quote(k, safe="-_.~"), quote(v, safe="-_.~")) for k, v in pairs)
    return "&".join(f"{k}={v}" for k, v in encoded)


def _canonical_headers(headers: Dict[str, str]) -> Tuple[str, str]:
    normalized: Dict[str, str] = {}
    for key, value in headers.items():
        normalized[key.strip().lower()] = " ".join(str(value).split())
    names: List[str] = sorted(normalized)
    canonical = "".join(f"{name}:{normalized[name]}\n" for name in names)
    return canonical, ";".join(names)


def sign_request(
    method: str,
    url: str,
    headers: Dict[str, str],
    payload: bytes,
    region: str,
    credentials: SigV4Credentials,
    service: str = SERVICE,
    now: Optional[datetime] = None,
    include_content_sha256: bool = False,
) -> Dict[str, str]:
    """Return a copy of `headers` with host, x-amz-date and authorization set."""
    now = now or datetime.now(timezone.utc)
    amz_date = now.strftime("%Y%m%dT%H%M%SZ")
    date_stamp = now.strftime("%Y%m%d")
    parts = urlsplit(url)

    signed = {k.lower(): v for k, v in headers.items() if k.lower() != "authorization"}
    signed["host"] = parts.netloc
    signed["x-amz-date"] = amz_date
    if credentials.session_token:
        signed["x-amz-security-token"] = credentials.session_token
    payload_hash = _sha256_hex(payload)
    if include_content_sha256:
        signed["x-amz-content-sha256"] = payload_hash

    canonical_headers, signed_headers = _canonical_headers(signed)
    canonical_request = "\n".join([
        method.upper(),
        canonical_uri(parts.path),
        canonical_query(parts.query),
        canonical_headers,
        signed_headers,
        payload_hash,
    ])
    scope = f"{date_stamp}/{region}/{service}/aws4_request"
    string_to_sign = "\n".join([ALGORITHM, amz_date, scope, _sha256_hex(canonical_request.encode("utf-8"))])
    signature = hmac.new(
        signing_key(credentials.secret_access_key, date_stamp, region, service),
        string_to_sign.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()

    signed["authorization"] = (
        f"{ALGORITHM} Credential={credentials.access_key_id}/{scope}, "
        f"SignedHeaders={signed_headers}, Signature={signature}"
    )
    logger.debug(f"Signed {method.upper()} {parts.path} region={region} headers={signed_headers}")
    return signed


def prepare_signed_request(
    url: str,
    headers: Dict[str, str],
    body: Any,
    cfg: TransportConfig,
    region: str,
    credentials: Optional[SigV4Credentials] = None,
    api_key: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[bytes, Dict[str, str]]:
    """
    Encode `body` and authenticate the request, either with a Bedrock API key
    (bearer) or by SigV4-signing the exact payload bytes.
    """
    payload = encode_body(body, cfg)
    out = {k.lower(): v for k, v in headers.items()}
    out.setdefault("content-type", "application/json")
    out.setdefault("accept", "application/json")
    if api_key:
        out["authorization"] = f"Bearer {api_key}"
        return payload, out
    if credentials is None:
        return payload, out
    return payload, sign_request("POST", url, out, payload, region, credentials, now=now)
