# ruff: noqa: I001
"""CLI for the ``statement_import`` package.

This module exposes callable command handlers (``cmd_inspect``,
``cmd_import``) and a Typer-based console interface. Environment variables
(notably ``DATABASE_URL``) are loaded from a local ``.env`` using
``python-dotenv`` before delegating to command logic, which lives in
``statement_import.importer`` and related modules.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from .logging_setup import configure_logging


def _read_bytes(file_path: str) -> bytes | None:
    try:
        return Path(file_path).read_bytes()
    except FileNotFoundError:
        print(f"Error: File not found: {file_path}", file=sys.stderr)
    except PermissionError:
        print(f"Error: Permission denied: {file_path}", file=sys.stderr)
    return None


def cmd_inspect(file_path: str) -> int:
    """Print what the parsers extract from a QIF/OFX file. No database access."""

    from . import ofx, qif
    from .importer import UNRECOGNIZED_FILE_MESSAGE, detect_kind
    from .models import ImportKind

    raw = _read_bytes(file_path)
    if raw is None:
        return 1

    kind = detect_kind(raw)
    if kind is None:
        print(f"Error: {UNRECOGNIZED_FILE_MESSAGE}", file=sys.stderr)
        return 1

    if kind is ImportKind.QIF:
        transactions = qif.parse(raw)
        print(f"format\tqif\naccount_type\t{qif.account_type(raw) or ''}")
        ob = qif.parse_opening_balance(raw)
        if ob is not None:
            print(f"opening_balance\t{ob.date.isoformat()}\t{ob.amount}")
    else:
        transactions = ofx.parse(raw)
        print(
            f"format\tofx\naccount_id\t{ofx.extract_account_id(raw) or ''}"
            f"\nbank\t{ofx.extract_bank_name(raw) or ''}"
            f"\ncurrency\t{ofx.extract_currency(raw)}"
        )

    for tx in transactions:
        print(
            "\t".join(
                [
                    tx.date,
                    tx.amount,
                    tx.payee or "",
                    tx.category,
                    ":".join(tx.tags),
                    tx.external_id or "",
                ]
            )
        )
    return 0


def cmd_import(
    file_path: str,
    *,
    account_id: int,
    publish: bool = False,
    database_url: str | None = None,
    default_currency: str | None = None,
) -> int:
    """Create an import for ``account_id``, materialize rows and optionally publish."""

    from pydantic import ValidationError

    from ledger_db.client import session_scope
    from ledger_db.models.ledger import Account

    from .anchor import preview_anchor_change
    from .importer import create_import, link_account
    from .importer import publish as publish_import
    from .settings import load_settings

    raw = _read_bytes(file_path)
    if raw is None:
        return 1

    try:
        settings = load_settings(default_currency=default_currency)
    except ValidationError as e:
        print(f"Error: invalid settings: {e}", file=sys.stderr)
        return 1

    try:
        with session_scope(database_url=database_url) as session:
            account = session.get(Account, account_id)
            if account is None:
                print(f"Error: Account not found: {account_id}", file=sys.stderr)
                return 1

            statement_import = create_import(session, raw, settings=settings)
            rows = link_account(session, statement_import, account)
            matched = sum(1 for r in rows if r.matched)
            print(f"import\t{statement_import.id}\nrows\t{len(rows)}\nmatched\t{matched}")

            change = preview_anchor_change(session, statement_import)
            if change is not None:
                balance = "" if change.balance is None else change.balance
                print(f"anchor\t{change.action.value}\t{change.date.isoformat()}\t{balance}")

            if publish:
                result = publish_import(session, statement_import)
                print(f"created\t{result.entries_created}")
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error: import failed: {e}", file=sys.stderr)
        return 1

    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="Import QIF and OFX/QFX bank statements into the ledger.",
)

# Module-level option object to satisfy ruff B008 (no calls in parameter
# defaults). Typer will inspect this when used as a default value below.
FILE_OPTION: OptionInfo = typer.Option(
    ...,  # required
    "--file",
    help="Path to a QIF, OFX or QFX file",
    dir_okay=False,
    file_okay=True,
    exists=False,  # allow non-existent here; the handler will report nice errors
)


@app.command("inspect")
def inspect_cmd(file_path: Annotated[Path, FILE_OPTION]) -> None:
    """Parse a file and print its transactions without touching the database."""

    raise typer.Exit(cmd_inspect(str(file_path)))


@app.command("import")
def import_cmd(
    file_path: Annotated[Path, FILE_OPTION],
    *,
    account_id: int = typer.Option(..., help="Target ledger account id."),
    publish: bool = typer.Option(False, help="Publish rows to the ledger after matching."),
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
    default_currency: str | None = typer.Option(
        None, help="Currency for rows whose file declares none (QIF)."
    ),
) -> None:
    """Import a file into an account; prints row, match and anchor summaries."""

    raise typer.Exit(
        cmd_import(
            str(file_path),
            account_id=account_id,
            publish=publish,
            database_url=database_url,
            default_currency=default_currency,
        )
    )


@app.callback(invoke_without_command=True)
def _root(
    ctx: typer.Context,
    log_level: str | None = typer.Option(
        None, help="Logging level (falls back to STATEMENT_IMPORT_LOG_LEVEL, then INFO)."
    ),
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    # Central logging setup so child loggers inherit configuration
    configure_logging(log_level)

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover
    app()
