"""SQLAlchemy models for all database tables."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    Computed,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    TIMESTAMP,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, TSVECTOR
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taxroll_archive.core.database import Base


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class AppUser(TimestampMixin, Base):
    """Authenticated staff or public account."""

    __tablename__ = "app_users"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    email: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    display_name: Mapped[str | None] = mapped_column(String, nullable=True)
    role: Mapped[str] = mapped_column(String, nullable=False, default="public")  # admin | transcriber | reviewer | public
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class County(TimestampMixin, Base):
    __tablename__ = "counties"
    __table_args__ = (UniqueConstraint("name", "state", name="uq_counties_name_state"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    state: Mapped[str | None] = mapped_column(String, nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    districts: Mapped[list["District"]] = relationship("District", back_populates="county")


class District(TimestampMixin, Base):
    __tablename__ = "districts"
    __table_args__ = (UniqueConstraint("county_id", "name", name="uq_districts_county_name"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    county_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("counties.id"), nullable=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    type: Mapped[str | None] = mapped_column(String, nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    county: Mapped["County | None"] = relationship("County", back_populates="districts")


class ArchiveRepository(TimestampMixin, Base):
    """Holding institution at the top of the citation chain."""

    __tablename__ = "repositories"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    location: Mapped[str | None] = mapped_column(String, nullable=True)
    url: Mapped[str | None] = mapped_column(String, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    sources: Mapped[list["Source"]] = relationship("Source", back_populates="repository")


class Source(TimestampMixin, Base):
    __tablename__ = "sources"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    repository_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("repositories.id"), nullable=False)
    title: Mapped[str] = mapped_column(String, nullable=False)
    county_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("counties.id"), nullable=True)
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    format: Mapped[str | None] = mapped_column(String, nullable=True)
    call_number: Mapped[str | None] = mapped_column(String, nullable=True)
    microfilm_roll: Mapped[str | None] = mapped_column(String, nullable=True)
    citation_preferred: Mapped[str | None] = mapped_column(Text, nullable=True)
    rights: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    repository: Mapped["ArchiveRepository"] = relationship("ArchiveRepository", back_populates="sources")
    items: Mapped[list["SourceItem"]] = relationship("SourceItem", back_populates="source")


class SourceItem(TimestampMixin, Base):
    """A volume or microfilm roll within a source."""

    __tablename__ = "source_items"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    source_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("sources.id"), nullable=False)
    label: Mapped[str] = mapped_column(String, nullable=False)
    date_range: Mapped[str | None] = mapped_column(String, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    source: Mapped["Source"] = relationship("Source", back_populates="items")
    pages: Mapped[list["Page"]] = relationship("Page", back_populates="source_item")


class Page(TimestampMixin, Base):
    """A single scanned page."""

    __tablename__ = "pages"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    source_item_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("source_items.id"), nullable=False)
    county_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("counties.id"), nullable=False)
    district_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("districts.id"), nullable=True)
    page_number_label: Mapped[str | None] = mapped_column(String, nullable=True)
    image_url: Mapped[str | None] = mapped_column(String, nullable=True)
    image_thumbnail_url: Mapped[str | None] = mapped_column(String, nullable=True)
    captured_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    needs_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    source_item: Mapped["SourceItem"] = relationship("SourceItem", back_populates="pages")


class Taxpayer(TimestampMixin, Base):
    """Named person assessed in a county/district."""

    __tablename__ = "taxpayers"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    county_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("counties.id"), nullable=False)
    district_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("districts.id"), nullable=True)
    name_original: Mapped[str] = mapped_column(String, nullable=False)
    name_normalized: Mapped[str] = mapped_column(String, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)


# NULL districts compare equal through the -1 sentinel
Index(
    "uq_taxpayers_scope_name",
    Taxpayer.county_id,
    func.coalesce(Taxpayer.district_id, -1),
    Taxpayer.name_normalized,
    unique=True,
)


class EnslavedPerson(TimestampMixin, Base):
    """Individual named in the records, deduplicated globally by normalized name."""

    __tablename__ = "enslaved_people"
    __table_args__ = (
        UniqueConstraint("name_normalized", name="uq_enslaved_people_name_normalized"),
        Index(
            "ix_enslaved_people_name_trgm",
            "name_normalized",
            postgresql_using="gin",
            postgresql_ops={"name_normalized": "gin_trgm_ops"},
        ),
        Index("ix_enslaved_people_name_tokens", "name_tokens", postgresql_using="gin"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    name_original: Mapped[str] = mapped_column(String, nullable=False)
    name_normalized: Mapped[str] = mapped_column(String, nullable=False)
    name_tokens: Mapped[str | None] = mapped_column(
        TSVECTOR,
        Computed("to_tsvector('simple'::regconfig, coalesce(name_original, ''))", persisted=True),
    )
    gender: Mapped[str | None] = mapped_column(String, nullable=True)
    approx_birth_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class TaxAssessmentEntry(TimestampMixin, Base):
    """One transcribed line of a tax list."""

    __tablename__ = "tax_assessment_entries"
    __table_args__ = (Index("ix_tax_assessment_entries_page_sequence", "page_id", "sequence_on_page"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    page_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("pages.id"), nullable=False)
    county_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("counties.id"), nullable=False)
    district_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("districts.id"), nullable=True)
    taxpayer_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("taxpayers.id"), nullable=False)
    enslaved_person_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("enslaved_people.id"), nullable=False)
    line_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sequence_on_page: Mapped[int | None] = mapped_column(Integer, nullable=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False, default=1863)

    details: Mapped["EnslavementDetails"] = relationship(
        "EnslavementDetails", back_populates="entry", uselist=False, cascade="all, delete-orphan"
    )


class EnslavementDetails(TimestampMixin, Base):
    """Transcribed descriptive fields and review status of an entry."""

    __tablename__ = "enslavement_details"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    entry_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tax_assessment_entries.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    category_original: Mapped[str | None] = mapped_column(String, nullable=True)
    age_original: Mapped[str | None] = mapped_column(String, nullable=True)
    age_years: Mapped[int | None] = mapped_column(Integer, nullable=True)
    value_original: Mapped[str | None] = mapped_column(String, nullable=True)
    value_cents: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    quantity_original: Mapped[str | None] = mapped_column(String, nullable=True)
    remarks_original: Mapped[str | None] = mapped_column(Text, nullable=True)
    transcription_confidence: Mapped[Decimal | None] = mapped_column(Numeric(5, 4), nullable=True)
    transcriber_user_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("app_users.id"), nullable=True)
    reviewed_by_user_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("app_users.id"), nullable=True)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default="draft", index=True
    )  # draft | pending_review | approved | rejected

    entry: Mapped["TaxAssessmentEntry"] = relationship("TaxAssessmentEntry", back_populates="details")


class AuditLogEntry(Base):
    """Append-only change record."""

    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    actor_user_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    action: Mapped[str] = mapped_column(String, nullable=False)
    table_name: Mapped[str] = mapped_column(String, nullable=False)
    record_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    old_data: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    new_data: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    request_meta: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
