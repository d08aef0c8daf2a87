import asyncpg
from typing import Optional
from ..errors import EmailAlreadyRegistered
from ..models.user import User

class UserRepository:
    def __init__(self, db):
        self.db = db

    async def get(self, user_id: int) -> Optional[User]:
        async with self.db.connection() as conn:
            row = await conn.fetchrow("SELECT * FROM users WHERE user_id = $1", user_id)
            return User.model_validate(dict(row)) if row else None

    async def find_by_email(self, email: str) -> Optional[User]:
        async with self.db.connection() as conn:
            row = await conn.fetchrow("SELECT * FROM users WHERE email = $1", email.lower())
            return User.model_validate(dict(row)) if row else None

    async def create(self, email: str, full_name: str, phone: Optional[str],
                     is_admin: bool = False) -> User:
        """Register a verified user"""
        async with self.db.connection() as conn:
            try:
                row = await conn.fetchrow("""
                    INSERT INTO users (email, full_name, phone, is_admin)
                    VALUES ($1, $2, $3, $4)
                    RETURNING *
                """, email.lower(), full_name, phone, is_admin)
            except asyncpg.UniqueViolationError:
                raise EmailAlreadyRegistered(email)
            return User.model_validate(dict(row))
