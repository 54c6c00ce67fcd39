from sqlalchemy import BigInteger, CheckConstraint, Enum, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from juxtapose.db.session import Base


REPOSITORY_STATUS = ("pending", "backfilling", "syncing", "active", "error")


class Repositories(Base):
    __tablename__ = "repositories"
    __table_args__ = (
        CheckConstraint("last_sync_at >= 0", name="ck_repositories_last_sync_at_non_negative"),
        Index("ix_repositories_status_last_sync_at", "status", "last_sync_at"),
    )

    full_name: Mapped[str] = mapped_column(String(255), primary_key=True)
    status: Mapped[str] = mapped_column(
        Enum(*REPOSITORY_STATUS, name="repository_status", native_enum=False),
        default="pending",
        server_default="pending",
    )
    last_sync_at: Mapped[int] = mapped_column(BigInteger, default=0, server_default="0")
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[int] = mapped_column(BigInteger)
    updated_at: Mapped[int] = mapped_column(BigInteger)
