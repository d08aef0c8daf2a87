import hashlib
import hmac
import secrets
import time
from typing import NamedTuple, Optional
from ..config import Config

class TokenClaims(NamedTuple):
    user_id: int
    is_admin: bool
    issued_at: int

def _sign(message: str) -> str:
    return hmac.new(
        Config.SECRET_KEY.encode(),
        message.encode(),
        hashlib.sha256
    ).hexdigest()

def generate_access_token(user_id: int, is_admin: bool = False) -> str:
    """Issue a signed access token"""
    timestamp = int(time.time())
    message = f"{user_id}:{int(is_admin)}:{timestamp}"
    return f"{message}:{_sign(message)}"

def verify_access_token(token: str) -> Optional[TokenClaims]:
    """Return the token claims, or None when the token is forged or expired"""
    try:
        message, signature = token.rsplit(':', 1)
        user_id, is_admin, timestamp = message.split(':')
        claims = TokenClaims(int(user_id), is_admin == "1", int(timestamp))
    except ValueError:
        return None

    if not hmac.compare_digest(signature, _sign(message)):
        return None

    if int(time.time()) - claims.issued_at > Config.TOKEN_TTL_SECONDS:
        return None

    return claims

def generate_otp(length: int) -> str:
    """Numeric one-time code without a leading zero"""
    low = 10 ** (length - 1)
    return str(low + secrets.randbelow(9 * low))

def hash_otp(code: str) -> str:
    return hashlib.sha256(code.encode()).hexdigest()

def otp_matches(code: str, code_hash: str) -> bool:
    return hmac.compare_digest(hash_otp(code), code_hash)
