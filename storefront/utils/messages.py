from datetime import datetime
from ..models.order import Order
from ..models.pending import PendingOperation, PendingRegistration
from ..utils.formatters import format_price, format_datetime

class Messages:
    @staticmethod
    def otp_message(operation: PendingOperation, code: str, expires_at: datetime) -> str:
        """Body of the one-time code message"""
        greeting = (
            f"Hi {operation.full_name},"
            if isinstance(operation, PendingRegistration) else "Hi,"
        )
        return (
            f"{greeting}\n"
            f"Your verification code is {code}.\n"
            f"It expires at {format_datetime(expires_at)}.\n"
            f"If you didn't request this, please ignore this message."
        )

    @staticmethod
    def order_summary(order: Order) -> str:
        """One-line order summary for logs"""
        return (
            f"order #{order.order_id} user={order.user_id} "
            f"items={len(order.items)} total={format_price(order.total_amount)}"
        )
