import logging
from datetime import datetime, timedelta
from typing import Callable, NamedTuple, Optional
from ..config import Config
from ..errors import AuthenticationError, EmailAlreadyRegistered, OtpError
from ..models.pending import (
    OtpPurpose, PendingLogin, PendingOperation, PendingRegistration
)
from ..models.user import User
from ..repositories.otp_repository import OtpRepository
from ..repositories.user_repository import UserRepository
from ..utils.formatters import utcnow
from ..utils.messages import Messages
from ..utils.security import generate_access_token, generate_otp, hash_otp, otp_matches

logger = logging.getLogger(__name__)

OtpSender = Callable[[PendingOperation, str, datetime], None]

def log_otp(operation: PendingOperation, code: str, expires_at: datetime):
    """Default sender: codes only reach the log when OTP_LOG_CODES is on"""
    if Config.OTP_LOG_CODES:
        logger.info(f"OTP for {operation.email}:\n{Messages.otp_message(operation, code, expires_at)}")
    else:
        logger.info(f"OTP issued for {operation.email} ({operation.kind})")

class AuthResult(NamedTuple):
    user: User
    token: str

class AuthService:
    """One-time-code registration and login"""

    def __init__(self, db, users: Optional[UserRepository] = None,
                 otps: Optional[OtpRepository] = None,
                 send_otp: OtpSender = log_otp,
                 clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.users = users or UserRepository(db)
        self.otps = otps or OtpRepository(db)
        self.send_otp = send_otp
        self.clock = clock
        self.logger = logging.getLogger(__name__)

    async def start_registration(self, email: str, full_name: str, phone: Optional[str] = None):
        """Send a code that creates the account once confirmed"""
        if await self.users.find_by_email(email):
            raise EmailAlreadyRegistered(email)
        await self._issue(PendingRegistration(email=email, full_name=full_name, phone=phone))

    async def start_login(self, email: str):
        """Send a sign-in code to an existing account"""
        user = await self.users.find_by_email(email)
        if not user or user.is_blocked:
            raise AuthenticationError("No active account found for this email")
        await self._issue(PendingLogin(email=email, user_id=user.user_id))

    async def verify(self, email: str, purpose: OtpPurpose, code: str) -> AuthResult:
        """Check the code and carry out the operation it was issued for"""
        record = await self.otps.find_latest_valid(email, purpose, self.clock())
        if not record:
            raise OtpError("OTP expired or not found", reason="OTP_MISSING")

        if record.attempts >= Config.OTP_MAX_ATTEMPTS:
            raise OtpError("Too many attempts. Request a new OTP.", reason="TOO_MANY")

        if not otp_matches(code, record.code_hash):
            await self.otps.increment_attempts(record.otp_id)
            raise OtpError("Invalid OTP", reason="INVALID_OTP")

        if not await self.otps.mark_used(record.otp_id):
            raise OtpError("OTP expired or not found", reason="OTP_MISSING")

        user = await self._complete(record.payload)
        self.logger.info(f"User {user.user_id} verified via {purpose.value} code")
        return AuthResult(user=user, token=generate_access_token(user.user_id, user.is_admin))

    async def _complete(self, operation: PendingOperation) -> User:
        if isinstance(operation, PendingRegistration):
            return await self.users.create(
                email=operation.email,
                full_name=operation.full_name,
                phone=operation.phone,
                is_admin=operation.email.lower() in Config.ADMIN_EMAILS
            )

        user = await self.users.get(operation.user_id)
        if not user or user.is_blocked:
            raise AuthenticationError("Account is no longer active")
        return user

    async def _issue(self, operation: PendingOperation):
        purpose = OtpPurpose(operation.kind)
        await self.otps.invalidate_previous(operation.email, purpose)

        code = generate_otp(Config.OTP_LENGTH)
        expires_at = self.clock() + timedelta(minutes=Config.OTP_TTL_MINUTES)
        await self.otps.create(
            email=operation.email,
            code_hash=hash_otp(code),
            expires_at=expires_at,
            payload=operation
        )
        self.send_otp(operation, code, expires_at)
