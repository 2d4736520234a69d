from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    func,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# SQLite only auto-increments INTEGER PRIMARY KEY columns.
_PK = BigInteger().with_variant(Integer(), "sqlite")


class Base(DeclarativeBase):
    pass


# ---------------------------
# Reference: accounts
# ---------------------------


class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, server_default=text("'USD'"))
    # ACCTID from the institution's OFX header. Set when the user links a file
    # to this account so later imports from the same institution auto-link.
    ofx_account_id: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    entries: Mapped[list[LedgerEntry]] = relationship(back_populates="account")

    __table_args__ = (
        Index(
            "uniq_accounts_ofx_account_id",
            "ofx_account_id",
            unique=True,
            sqlite_where=text("ofx_account_id IS NOT NULL"),
            postgresql_where=text("ofx_account_id IS NOT NULL"),
        ),
    )


# ---------------------------
# Reference: categories / tags
# ---------------------------


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    # Exact label as imported; hierarchical "Parent:Child" names are one key.
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    classification: Mapped[str] = mapped_column(
        String, nullable=False, server_default=text("'expense'")
    )

    __table_args__ = (
        CheckConstraint(
            "classification in ('income','expense')",
            name="ck_categories_classification",
        ),
    )


class Tag(Base):
    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


entry_tags = Table(
    "ledger_entry_tags",
    Base.metadata,
    Column("entry_id", ForeignKey("ledger_entries.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


# ---------------------------
# Core: ledger_entries
# ---------------------------


class LedgerEntry(Base):
    __tablename__ = "ledger_entries"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), nullable=False)
    # "transaction" for real movements; "opening_anchor" for the synthetic
    # starting-balance marker (at most one per account, see index below).
    kind: Mapped[str] = mapped_column(
        String, nullable=False, server_default=text("'transaction'")
    )
    date: Mapped[date] = mapped_column(Date, nullable=False)
    # Ledger convention: outflows positive, inflows negative.
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    # Only meaningful for opening anchors.
    balance: Mapped[Decimal | None] = mapped_column(Numeric(18, 4), nullable=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, server_default=text("'USD'"))
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    external_id: Mapped[str | None] = mapped_column(String, nullable=True)
    import_id: Mapped[int | None] = mapped_column(
        ForeignKey("statement_imports.id"), nullable=True
    )
    category_id: Mapped[int | None] = mapped_column(ForeignKey("categories.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    account: Mapped[Account] = relationship(back_populates="entries")
    category: Mapped[Category | None] = relationship()
    tags: Mapped[list[Tag]] = relationship(secondary=entry_tags)

    __table_args__ = (
        CheckConstraint(
            "kind in ('transaction','opening_anchor')",
            name="ck_ledger_entries_kind",
        ),
        Index(
            "uniq_ledger_entries_opening_anchor",
            "account_id",
            unique=True,
            sqlite_where=text("kind = 'opening_anchor'"),
            postgresql_where=text("kind = 'opening_anchor'"),
        ),
        Index(
            "ix_ledger_entries_account_external_id",
            "account_id",
            "external_id",
            sqlite_where=text("external_id IS NOT NULL"),
            postgresql_where=text("external_id IS NOT NULL"),
        ),
    )


# ---------------------------
# Imports: statement_imports / import_rows
# ---------------------------


class StatementImport(Base):
    __tablename__ = "statement_imports"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    kind: Mapped[str] = mapped_column(String, nullable=False)
    account_id: Mapped[int | None] = mapped_column(ForeignKey("accounts.id"), nullable=True)
    # Normalized UTF-8 text of the uploaded file.
    raw_file_str: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, server_default=text("'pending'"))
    default_currency: Mapped[str] = mapped_column(
        String(3), nullable=False, server_default=text("'USD'")
    )
    default_row_name: Mapped[str] = mapped_column(
        Text, nullable=False, server_default=text("'Imported item'")
    )
    signage_convention: Mapped[str] = mapped_column(
        String, nullable=False, server_default=text("'inflows_positive'")
    )
    date_format: Mapped[str] = mapped_column(
        String, nullable=False, server_default=text("'%Y-%m-%d'")
    )
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    account: Mapped[Account | None] = relationship()
    rows: Mapped[list[ImportRow]] = relationship(
        back_populates="statement_import",
        order_by="ImportRow.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("kind in ('qif','ofx')", name="ck_statement_imports_kind"),
        CheckConstraint(
            "status in ('pending','complete','failed')",
            name="ck_statement_imports_status",
        ),
        CheckConstraint(
            "signage_convention in ('inflows_positive','inflows_negative')",
            name="ck_statement_imports_signage",
        ),
    )


class ImportRow(Base):
    __tablename__ = "import_rows"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    import_id: Mapped[int] = mapped_column(
        ForeignKey("statement_imports.id", ondelete="CASCADE"), nullable=False
    )
    date: Mapped[str] = mapped_column(String, nullable=False)
    # Signed decimal text exactly as parsed; never a float.
    amount: Mapped[str] = mapped_column(String, nullable=False)
    currency: Mapped[str] = mapped_column(String, nullable=False, server_default=text("''"))
    name: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    notes: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    category: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    # Pipe-separated tag labels.
    tags: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    external_id: Mapped[str] = mapped_column(String, nullable=False, server_default=text("''"))
    # Columns only meaningful to other import variants (trades, account lists);
    # kept so every variant shares one row schema.
    account: Mapped[str] = mapped_column(String, nullable=False, server_default=text("''"))
    qty: Mapped[str] = mapped_column(String, nullable=False, server_default=text("''"))
    ticker: Mapped[str] = mapped_column(String, nullable=False, server_default=text("''"))
    price: Mapped[str] = mapped_column(String, nullable=False, server_default=text("''"))
    exchange_operating_mic: Mapped[str] = mapped_column(
        String, nullable=False, server_default=text("''")
    )
    entity_type: Mapped[str] = mapped_column(String, nullable=False, server_default=text("''"))
    # Pre-existing ledger entry this row duplicates. Relation only.
    matched_entry_id: Mapped[int | None] = mapped_column(
        ForeignKey("ledger_entries.id"), nullable=True
    )

    statement_import: Mapped[StatementImport] = relationship(back_populates="rows")
    matched_entry: Mapped[LedgerEntry | None] = relationship()

    @property
    def matched(self) -> bool:
        return self.matched_entry_id is not None

    @property
    def tags_list(self) -> list[str]:
        return [t for t in (self.tags or "").split("|") if t.strip()]


__all__ = [
    "Base",
    "Account",
    "Category",
    "Tag",
    "LedgerEntry",
    "StatementImport",
    "ImportRow",
    "entry_tags",
]
