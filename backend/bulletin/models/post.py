"""Post model - board posts and notices (is_notice=True)."""
from datetime import datetime
from sqlalchemy import String, Text, Boolean, BigInteger, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column
from bulletin.models.base import Base, TimestampMixin, as_utc, utcnow


class Post(Base, TimestampMixin):
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    author: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    # Notice lifecycle
    is_notice: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_pinned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    expiry_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    send_notification: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    view_count: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    __table_args__ = (
        Index("idx_posts_board_order", "is_notice", "is_pinned", "created_at"),
        Index("idx_posts_notice_expiry", "is_notice", "is_active", "expiry_date"),
    )

    @property
    def is_expired(self) -> bool:
        return self.expiry_date is not None and as_utc(self.expiry_date) < utcnow()

    def deactivate_if_expired(self) -> None:
        """An expired notice can never be active."""
        if self.is_notice and self.is_expired:
            self.is_active = False
