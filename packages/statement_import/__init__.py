"""Public interface for the ``statement_import`` package.

Parsers for QIF and OFX/QFX bank exports plus the reconciliation layer that
merges parsed rows into an existing ledger. Only symbol re-exports live here.
"""

from .anchor import (
    AnchorAction,
    AnchorChange,
    adjusted_opening_anchor_date,
    preview_anchor_change,
    will_adjust_opening_anchor,
)
from .encoding import normalize_encoding
from .importer import (
    PublishResult,
    create_import,
    find_linked_account,
    link_account,
    publish,
    quick_import,
)
from .matching import auto_match_rows, match_rows
from .models import (
    ImportKind,
    OpeningBalanceEntry,
    ParsedCategory,
    ParsedTag,
    ParsedTransaction,
    SignageConvention,
)
from .rows import generate_rows
from .settings import ImportSettings, load_settings

__all__ = [
    # Parsing
    "normalize_encoding",
    "ParsedTransaction",
    "ParsedCategory",
    "ParsedTag",
    "OpeningBalanceEntry",
    # Reconciliation
    "generate_rows",
    "match_rows",
    "auto_match_rows",
    "AnchorAction",
    "AnchorChange",
    "preview_anchor_change",
    "will_adjust_opening_anchor",
    "adjusted_opening_anchor_date",
    # Orchestration
    "create_import",
    "find_linked_account",
    "link_account",
    "quick_import",
    "publish",
    "PublishResult",
    # Configuration
    "ImportKind",
    "SignageConvention",
    "ImportSettings",
    "load_settings",
]
