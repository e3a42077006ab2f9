"""nutkeep CLI - local Cashu wallet."""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import WalletConfig, load_config
from .types import InsufficientFunds, SerializationError, WalletError
from .wallet import Wallet

app = typer.Typer(
    name="nutkeep",
    help="nutkeep - local Cashu wallet CLI",
    rich_markup_mode="markdown",
)
console = Console()

MintOption = Annotated[
    Optional[str], typer.Option("--mint", "-m", help="Mint URL (overrides NUTKEEP_MINT_URL)")
]
HomeOption = Annotated[
    Optional[Path], typer.Option("--home", help="Wallet directory (overrides NUTKEEP_HOME)")
]


def handle_wallet_error(e: Exception) -> None:
    """Print a user-friendly message for a failed command."""
    if isinstance(e, InsufficientFunds):
        console.print(f"[red]💰 {e}[/red]")
    elif isinstance(e, SerializationError):
        console.print(f"[red]❌ Invalid token format! {e}[/red]")
    elif isinstance(e, WalletError):
        console.print(f"[red]❌ {e}[/red]")
    else:
        console.print(f"[red]❌ Error: {e}[/red]")


def _config(mint_url: str | None, home: Path | None, verbose: bool) -> WalletConfig:
    config = load_config(mint_url=mint_url, home=home)
    logging.basicConfig(
        level=logging.DEBUG if verbose else config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    return config


async def _open_wallet(config: WalletConfig) -> Wallet:
    return await Wallet.create(config.mint_url, config.home, unit=config.unit)


def _run(coro_factory, mint_url: str | None, home: Path | None, verbose: bool) -> None:
    try:
        config = _config(mint_url, home, verbose)

        async def _main() -> None:
            async with await _open_wallet(config) as wallet:
                await coro_factory(wallet)

        asyncio.run(_main())
    except Exception as e:
        handle_wallet_error(e)
        raise typer.Exit(1)


VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")]


@app.command()
def balance(
    mint_url: MintOption = None, home: HomeOption = None, verbose: VerboseOption = False
) -> None:
    """Show the wallet balance."""

    async def _balance(wallet: Wallet) -> None:
        amount = await wallet.get_balance()
        console.print(f"[green]✅ Balance: {amount} {wallet.keyset.unit}[/green]")

    _run(_balance, mint_url, home, verbose)


@app.command()
def mint(
    amount: Annotated[Optional[int], typer.Argument(help="Amount to mint")] = None,
    invoice: Annotated[
        Optional[str], typer.Option("--invoice", "-i", help="Redeem this paid invoice")
    ] = None,
    mint_url: MintOption = None,
    home: HomeOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Request an invoice for AMOUNT, or redeem a paid one with --invoice.

    Request an invoice:
        nutkeep mint 100

    Mint tokens once it is paid:
        nutkeep mint --invoice lnbc...
    """
    if amount is None and invoice is None:
        console.print("[red]❌ Specify an amount to mint or --invoice[/red]")
        raise typer.Exit(1)

    async def _mint(wallet: Wallet) -> None:
        if invoice is not None:
            proofs = await wallet.mint_tokens(invoice)
            total = sum(p["amount"] for p in proofs)
            console.print(f"[green]✅ Minted {total} {wallet.keyset.unit}[/green]")
        elif amount is not None:
            new_invoice = await wallet.request_mint(amount)
            console.print("[blue]Invoice to pay:[/blue]")
            console.print(new_invoice.payment_request, soft_wrap=True)

    _run(_mint, mint_url, home, verbose)


@app.command()
def invoices(
    mint_url: MintOption = None, home: HomeOption = None, verbose: VerboseOption = False
) -> None:
    """List invoices requested by this wallet."""

    async def _invoices(wallet: Wallet) -> None:
        stored = wallet.invoices.all()
        if not stored:
            console.print("[yellow]No invoices[/yellow]")
            return
        table = Table(title="Invoices")
        table.add_column("Quote", style="cyan")
        table.add_column("Amount", style="green")
        table.add_column("Payment request", overflow="fold")
        for inv in stored:
            table.add_row(inv.hash, str(inv.amount), inv.payment_request)
        console.print(table)

    _run(_invoices, mint_url, home, verbose)


@app.command()
def send(
    amount: Annotated[int, typer.Argument(help="Amount to send")],
    v3: Annotated[bool, typer.Option("--v3", help="Emit a cashuA (V3) token")] = False,
    memo: Annotated[Optional[str], typer.Option("--memo", help="Token memo")] = None,
    mint_url: MintOption = None,
    home: HomeOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Create a token worth AMOUNT."""

    async def _send(wallet: Wallet) -> None:
        token = await wallet.send(amount, token_version=3 if v3 else 4, memo=memo)
        console.print(token, soft_wrap=True)

    _run(_send, mint_url, home, verbose)


@app.command()
def receive(
    token: Annotated[str, typer.Argument(help="Cashu token to receive")],
    mint_url: MintOption = None,
    home: HomeOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Receive a Cashu token into the wallet."""

    async def _receive(wallet: Wallet) -> None:
        amount = await wallet.receive(token)
        console.print(f"[green]✅ Received {amount} {wallet.keyset.unit}[/green]")

    _run(_receive, mint_url, home, verbose)


@app.command()
def recover(
    mint_url: MintOption = None, home: HomeOption = None, verbose: VerboseOption = False
) -> None:
    """Finish mint calls interrupted by a crash."""

    async def _recover(wallet: Wallet) -> None:
        pending = len(wallet.journal.pending())
        if not pending:
            console.print("[green]✅ Nothing to recover[/green]")
            return
        amount = await wallet.recover()
        console.print(
            f"[green]✅ Resolved {pending} pending operation(s), restored {amount} "
            f"{wallet.keyset.unit}[/green]"
        )

    _run(_recover, mint_url, home, verbose)


def version_callback(value: bool) -> None:
    """Handle version flag."""
    if value:
        console.print(f"nutkeep v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=version_callback, help="Show version"),
    ] = None,
) -> None:
    """nutkeep - local Cashu wallet CLI.

    CONFIGURATION (environment or cwd/.env file):
    • NUTKEEP_MINT_URL="https://mint.example.com"
    • NUTKEEP_HOME="~/.nutkeep"
    • NUTKEEP_UNIT="sat"
    • NUTKEEP_LOG_LEVEL="INFO"
    """
    pass


def cli() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    cli()
