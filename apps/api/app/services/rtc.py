"""RTC service abstraction.

This module mints Agora "007" access tokens for community video calls. A token
is the version tag followed by base64(signature || message), where the message
packs a salt, the issue time and the privilege map, and the signature is an
HMAC-SHA256 over appId || channelName || uid || message keyed by the app
certificate."""
from __future__ import annotations

import base64
import binascii
import enum
import hmac
import logging
import secrets
import time
from dataclasses import dataclass

from ..core.config import Settings
from ..core.errors import ConfigurationError, TokenRequestError
from ..schemas.rtc import RtcTokenRequest, RtcTokenResponse
from . import codec
from .signatures import TOKEN_SIGNATURE_SIZE, sign_token

TOKEN_VERSION = "007"

logger = logging.getLogger(__name__)


class Role(str, enum.Enum):
    PUBLISHER = "publisher"
    SUBSCRIBER = "subscriber"


class Privilege(enum.IntEnum):
    JOIN_CHANNEL = 1
    PUBLISH_AUDIO_STREAM = 2
    PUBLISH_VIDEO_STREAM = 3
    PUBLISH_DATA_STREAM = 4


PUBLISH_PRIVILEGES: tuple[Privilege, ...] = (
    Privilege.PUBLISH_AUDIO_STREAM,
    Privilege.PUBLISH_VIDEO_STREAM,
    Privilege.PUBLISH_DATA_STREAM,
)


@dataclass(slots=True)
class AccessToken:
    version: str
    signature: bytes
    salt: int
    issued_at: int
    privileges: dict[int, int]
    message: bytes


def build_privileges(role: Role, expire_ts: int) -> dict[int, int]:
    """Return the ordered privilege map for a role, all sharing one expiry."""

    privileges = {int(Privilege.JOIN_CHANNEL): expire_ts}
    if role is Role.PUBLISHER:
        for privilege in PUBLISH_PRIVILEGES:
            privileges[int(privilege)] = expire_ts
    return privileges


def pack_message(salt: int, issued_at: int, privileges: dict[int, int]) -> bytes:
    return codec.encode_uint32(salt) + codec.encode_uint32(issued_at) + codec.encode_map_uint32(privileges)


def signing_input(app_id: str, channel_name: str, uid: int, message: bytes) -> bytes:
    """Concatenate the signed fields; uid is rendered as its base-10 string."""

    return app_id.encode("utf-8") + channel_name.encode("utf-8") + str(uid).encode("utf-8") + message


def build_token(
    app_id: str,
    app_certificate: str,
    channel_name: str,
    uid: int,
    role: Role,
    privilege_expired_ts: int,
    *,
    salt: int | None = None,
    issued_at: int | None = None,
) -> str:
    """Mint a signed access token.

    ``salt`` and ``issued_at`` default to a random uint32 and the current epoch
    second; tests inject them to get reproducible bytes.
    """

    if not app_id or not app_certificate:
        raise ConfigurationError("Agora credentials not configured")
    if not channel_name:
        raise TokenRequestError("Channel name is required")
    if not 0 <= uid <= codec.UINT32_MAX:
        raise TokenRequestError("uid must be an unsigned 32-bit integer")

    if salt is None:
        salt = secrets.randbits(32)
    if issued_at is None:
        issued_at = int(time.time())

    message = pack_message(salt, issued_at, build_privileges(role, privilege_expired_ts))
    signature = sign_token(app_certificate, signing_input(app_id, channel_name, uid, message))
    content = base64.b64encode(signature + message).decode("ascii")
    return f"{TOKEN_VERSION}{content}"


def parse_token(token: str) -> AccessToken:
    """Decode a token back into its fields without checking the signature."""

    if not token.startswith(TOKEN_VERSION):
        raise ValueError("Unsupported token version")
    try:
        content = base64.b64decode(token[len(TOKEN_VERSION):], validate=True)
    except binascii.Error as exc:
        raise ValueError("Token is not valid base64") from exc

    signature, message = content[:TOKEN_SIGNATURE_SIZE], content[TOKEN_SIGNATURE_SIZE:]
    if len(signature) != TOKEN_SIGNATURE_SIZE:
        raise ValueError("Token is truncated")

    salt, offset = codec.decode_uint32(message)
    issued_at, offset = codec.decode_uint32(message, offset)
    privileges, offset = codec.decode_map_uint32(message, offset)
    if offset != len(message):
        raise ValueError("Trailing bytes after privilege map")

    return AccessToken(
        version=TOKEN_VERSION,
        signature=signature,
        salt=salt,
        issued_at=issued_at,
        privileges=privileges,
        message=message,
    )


def verify_token(token: str, app_id: str, app_certificate: str, channel_name: str, uid: int) -> bool:
    """Return True if the token was signed with ``app_certificate`` for this channel and uid."""

    try:
        parsed = parse_token(token)
    except ValueError:
        return False
    expected = sign_token(app_certificate, signing_input(app_id, channel_name, uid, parsed.message))
    return hmac.compare_digest(expected, parsed.signature)


async def issue_token(payload: RtcTokenRequest, settings: Settings) -> RtcTokenResponse:
    """Produce an RTC access token valid for the configured TTL."""

    uid = payload.uid or 0
    role = Role(payload.role)
    expire_ts = int(time.time()) + settings.agora_token_ttl_seconds

    logger.info("Generating token for channel=%s uid=%s role=%s", payload.channel_name, uid, role.value)

    token = build_token(
        settings.agora_app_id,
        settings.agora_app_certificate,
        payload.channel_name,
        uid,
        role,
        expire_ts,
    )
    return RtcTokenResponse(
        token=token,
        app_id=settings.agora_app_id,
        channel_name=payload.channel_name,
        uid=uid,
    )
