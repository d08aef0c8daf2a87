from datetime import datetime
from typing import Optional
from ..models.pending import OtpPurpose, OtpRecord, PendingOperation

class OtpRepository:
    """Hashed one-time codes with the operation they unlock"""

    def __init__(self, db):
        self.db = db

    async def invalidate_previous(self, email: str, purpose: OtpPurpose):
        async with self.db.connection() as conn:
            await conn.execute("""
                UPDATE otp_codes SET used = true
                WHERE email = $1 AND purpose = $2 AND used = false
            """, email.lower(), purpose.value)

    async def create(self, email: str, code_hash: str, expires_at: datetime,
                     payload: PendingOperation) -> OtpRecord:
        async with self.db.connection() as conn:
            row = await conn.fetchrow("""
                INSERT INTO otp_codes (email, purpose, code_hash, expires_at, payload)
                VALUES ($1, $2, $3, $4, $5)
                RETURNING *
            """, email.lower(), payload.kind, code_hash, expires_at, payload.model_dump(mode="json"))
            return OtpRecord.model_validate(dict(row))

    async def find_latest_valid(self, email: str, purpose: OtpPurpose, now: datetime) -> Optional[OtpRecord]:
        """Newest unused, unexpired code"""
        async with self.db.connection() as conn:
            row = await conn.fetchrow("""
                SELECT * FROM otp_codes
                WHERE email = $1 AND purpose = $2 AND used = false AND expires_at > $3
                ORDER BY created_at DESC
                LIMIT 1
            """, email.lower(), purpose.value, now)
            return OtpRecord.model_validate(dict(row)) if row else None

    async def increment_attempts(self, otp_id: int):
        async with self.db.connection() as conn:
            await conn.execute(
                "UPDATE otp_codes SET attempts = attempts + 1 WHERE otp_id = $1",
                otp_id
            )

    async def mark_used(self, otp_id: int) -> bool:
        """Consume the code; False if someone else consumed it first"""
        async with self.db.connection() as conn:
            result = await conn.execute(
                "UPDATE otp_codes SET used = true WHERE otp_id = $1 AND used = false",
                otp_id
            )
            return result == "UPDATE 1"
