"""Table for normalized alerts, keyed by (source, external_id)."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    pass


class AlertRow(Base):
    """Latest known version of each alert.

    ``hash`` changes whenever the upstream record's effective timestamp does,
    which is what the upsert compares to decide whether to rewrite a row.
    """

    __tablename__ = "normalized_alerts"

    source: Mapped[str] = mapped_column(String(32), primary_key=True)
    external_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    hash: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    title: Mapped[str] = mapped_column(Text, nullable=False)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    link_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    date_published: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    date_updated: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    jurisdiction: Mapped[str | None] = mapped_column(String(100), nullable=True)
    locations: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    product_types: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    category: Mapped[str | None] = mapped_column(String(32), nullable=True)
    severity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    raw: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    ingested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
