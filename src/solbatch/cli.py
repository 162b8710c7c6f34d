"""
Command-line interface for the Solana batch wallets manager.

Provides commands for generating, funding, consolidating and inspecting wallets.
"""

import argparse
import asyncio
import logging
import sys
from typing import Callable, List, Optional, Sequence

import structlog

from solbatch import __version__
from solbatch.config import BatcherConfig, NetworkType, set_config
from solbatch.core.account import Account, parse_pubkey
from solbatch.core.batcher import TransferPlan, WalletBatcher
from solbatch.core.errors import InsufficientBalanceError, InvalidInputError
from solbatch.core.job import BatchReport
from solbatch.core.units import format_sol, sol_to_lamports
from solbatch.engine.balances import BalanceSummary
from solbatch.node.interface import NodeConnectionError
from solbatch.state.wallet_store import load_wallets, save_wallets, wallet_file_exists

logger = structlog.get_logger(__name__)

InputFn = Callable[[str], str]


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """Configure structured logging."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if json_format
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Logs go to stderr so command output stays readable on stdout
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper()),
        stream=sys.stderr,
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="solana-batch-wallets",
        description="Helps generate multiple wallets. Fund them and get sol back from them.",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--rpc-endpoint",
        help="Solana RPC endpoint (default: RPC_ENDPOINT from the environment or .env)",
    )
    parser.add_argument(
        "--network",
        choices=[n.value for n in NetworkType],
        help="Cluster the RPC endpoint belongs to, used for explorer links",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: SOLBATCH_LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Output logs in JSON format",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    generate_parser = subparsers.add_parser("generate-wallets", help="generates wallets")
    generate_parser.add_argument(
        "number",
        type=int,
        help="number of wallets to generate",
    )
    generate_parser.add_argument(
        "-o", "--output",
        default="wallets.json",
        help="output file name or path (default: wallets.json)",
    )

    fund_parser = subparsers.add_parser("fund-wallets", help="Fund wallets with sol.")
    fund_parser.add_argument(
        "wallets_file",
        help="json file containing wallets. File should have an array of objects with publicKey field.",
    )
    fund_parser.add_argument(
        "amount",
        help="amount of sol to send to each wallet",
    )
    fund_parser.add_argument(
        "sender",
        help="base58 private key of the wallet to send sol from",
    )

    consolidate_parser = subparsers.add_parser(
        "consolidate-sol",
        help="Consolidate sol from multiple wallets to a single wallet.",
    )
    consolidate_parser.add_argument(
        "wallets_file",
        help="json file containing wallets. File should have an array of objects "
             "with privateKey and publicKey field.",
    )
    consolidate_parser.add_argument(
        "to_address",
        help="public Key of the wallet to send sol to.",
    )

    balances_parser = subparsers.add_parser("get-balances", help="Get sol balance of wallets.")
    balances_parser.add_argument(
        "wallets_file",
        help="json file containing wallets. File should have an array of objects with publicKey field.",
    )

    token_parser = subparsers.add_parser(
        "get-token-balances",
        help="Get specified token balance for each wallet.",
    )
    token_parser.add_argument(
        "wallets_file",
        help="json file containing wallets. File should have an array of objects with publicKey field.",
    )
    token_parser.add_argument(
        "token_mint",
        help="token mint address",
    )

    return parser


def build_config(args: argparse.Namespace) -> BatcherConfig:
    """Create the configuration from the environment and command-line overrides."""
    overrides = {}
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.log_json:
        overrides["log_json"] = True
    if args.rpc_endpoint:
        overrides["rpc_endpoint"] = args.rpc_endpoint
    if args.network:
        overrides["network"] = NetworkType(args.network)
    return BatcherConfig(**overrides)


def confirm(message: str, input_fn: InputFn = input) -> bool:
    """Ask a y/n question; anything but "y" is a no."""
    try:
        answer = input_fn(f"{message} (y/n) ")
    except EOFError:
        return False
    return answer.strip().lower() == "y"


def _print_table(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> None:
    widths = [len(h) for h in headers]
    for row in rows:
        widths = [max(w, len(cell)) for w, cell in zip(widths, row)]

    line = "  ".join(h.ljust(w) for h, w in zip(headers, widths))
    print(line)
    print("-" * len(line))
    for row in rows:
        print("  ".join(cell.ljust(w) for cell, w in zip(row, widths)))


def print_report(report: BatchReport, config: BatcherConfig) -> None:
    """Print successful transaction links and the failed groups."""
    print(f"{report.succeeded_count} successful transactions.")
    print(f"{report.failed_count} failed transactions.")

    print("\n========= SUCCESSFUL TXS =========\n")
    for signature in report.succeeded:
        print(config.explorer_tx_url(signature))

    if report.all_succeeded:
        return

    print("\n========= FAILED TXS =========\n")
    for failed in report.failed:
        reference = f" ({config.explorer_tx_url(failed.tx_id)})" if failed.tx_id else ""
        print(f"group {failed.group_index}: {failed.cause}{reference}")


def print_skipped(plan: TransferPlan) -> None:
    """Print wallets left out of a plan."""
    if not plan.skipped:
        return
    print(f"Skipping {len(plan.skipped)} wallets:")
    for skipped in plan.skipped:
        print(f"  {skipped.account.address}: {skipped.reason}")


def print_balances(summary: BalanceSummary) -> None:
    """Print a SOL balance table."""
    rows = [
        [str(result.account.address), format_sol(result.balance.amount)]
        for result in summary.results
        if result.ok
    ]
    _print_table(["wallet", "balance"], rows)

    if summary.failed_count > 0:
        print(f"Failed to get balance for {summary.failed_count} wallets.", file=sys.stderr)

    print(f"Total sol: {format_sol(summary.total)}")


def print_token_balances(summary: BalanceSummary) -> None:
    """Print a token balance table."""
    rows = []
    for result in summary.results:
        if result.ok:
            balance = result.balance
            token_account = str(balance.token_account) if balance.token_account else "N/A"
            rows.append([str(result.account.address), token_account, f"{balance.ui_amount:f}"])
        else:
            rows.append([str(result.account.address), "?", "error"])
    _print_table(["wallet", "ata", "balance"], rows)

    if summary.failed_count > 0:
        print(f"Failed to get token balance for {summary.failed_count} wallets.", file=sys.stderr)

    print(f"Fetched token balances for {len(summary.results)} wallets.")
    print(f"Total Balance: {summary.ui_total:,f}")


def generate_wallets(args: argparse.Namespace, input_fn: InputFn = input) -> int:
    """Generate wallets and write them to a file."""
    if wallet_file_exists(args.output):
        if not confirm(
            f"A file at {args.output} already exists. Do you want to overwrite it?",
            input_fn,
        ):
            print("Exiting.")
            return 0

    wallets = WalletBatcher.generate_wallets(args.number)
    save_wallets(wallets, args.output)
    print(f"Successfully written {len(wallets)} wallets to {args.output}")
    return 0


async def fund_wallets(
    args: argparse.Namespace,
    config: BatcherConfig,
    input_fn: InputFn = input,
    batcher: Optional[WalletBatcher] = None,
) -> int:
    """Fund every wallet in a file with the same SOL amount."""
    wallets = load_wallets(args.wallets_file)
    sender = Account.from_private_key(args.sender)
    # Reject a bad amount before connecting
    sol_to_lamports(args.amount)

    batcher = batcher or WalletBatcher(config)
    async with batcher:
        plan = await batcher.prepare_funding(wallets, sender, args.amount)

        if not confirm(
            f"Sending {format_sol(plan.total_lamports)} sol in total to "
            f"{plan.transfer_count} wallets. Proceed?",
            input_fn,
        ):
            print("Exiting.")
            return 0

        print(f"Sending {plan.transaction_count} transactions.")
        report = await batcher.execute(plan)
        print_report(report, config)
        return 0


async def consolidate_sol(
    args: argparse.Namespace,
    config: BatcherConfig,
    input_fn: InputFn = input,
    batcher: Optional[WalletBatcher] = None,
) -> int:
    """Sweep SOL from every wallet in a file into one address."""
    wallets = load_wallets(args.wallets_file, require_private_keys=True)
    destination = Account(address=parse_pubkey(args.to_address))

    batcher = batcher or WalletBatcher(config)
    async with batcher:
        plan = await batcher.prepare_consolidation(wallets, destination)
        print_skipped(plan)

        if plan.is_empty:
            print("No wallet has SOL above the reserve. Nothing to send.")
            return 0

        if not confirm(
            f"Sending {format_sol(plan.total_lamports)} sol from "
            f"{plan.transfer_count} wallets to {destination.address}. Proceed?",
            input_fn,
        ):
            print("Exiting.")
            return 0

        print(f"Sending {plan.transaction_count} transactions.")
        report = await batcher.execute(plan)
        print_report(report, config)
        return 0


async def get_balances(
    args: argparse.Namespace,
    config: BatcherConfig,
    batcher: Optional[WalletBatcher] = None,
) -> int:
    """Print the SOL balance of every wallet in a file."""
    wallets = load_wallets(args.wallets_file)
    print(f"Fetching SOL Balance for {len(wallets)} wallets.")

    batcher = batcher or WalletBatcher(config)
    async with batcher:
        summary = await batcher.get_balances(wallets)

    print_balances(summary)
    return 0


async def get_token_balances(
    args: argparse.Namespace,
    config: BatcherConfig,
    batcher: Optional[WalletBatcher] = None,
) -> int:
    """Print one token's balance for every wallet in a file."""
    wallets = load_wallets(args.wallets_file)
    mint = parse_pubkey(args.token_mint)

    batcher = batcher or WalletBatcher(config)
    async with batcher:
        summary = await batcher.get_token_balances(wallets, mint)

    print_token_balances(summary)
    return 0


NETWORK_COMMANDS = {
    "fund-wallets": fund_wallets,
    "consolidate-sol": consolidate_sol,
    "get-balances": get_balances,
    "get-token-balances": get_token_balances,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    config = build_config(args)
    set_config(config)
    setup_logging(config.log_level, config.log_json)

    try:
        if args.command == "generate-wallets":
            return generate_wallets(args)

        if not config.rpc_endpoint:
            print(
                "Please add RPC_ENDPOINT to the .env file in the root of the project.",
                file=sys.stderr,
            )
            return 1

        return asyncio.run(NETWORK_COMMANDS[args.command](args, config))

    except (InvalidInputError, InsufficientBalanceError, NodeConnectionError) as e:
        logger.debug("command_failed", command=args.command, error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
