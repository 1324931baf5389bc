import argparse
import asyncio
import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import List, Optional

from pydantic import ValidationError
from solana.rpc.async_api import AsyncClient
from solders.pubkey import Pubkey

from .compute import RpcTransactionSimulator
from .config import LoggingSettings, Settings, get_settings
from .discovery import RaydiumApiClient
from .exceptions import ConfigurationError, RaydiumSwapError
from .executor import RaydiumAmm
from .models import Quote, SwapConfigOverrides, SwapMode, SwapRequest
from .validators import validate_pubkey

logger = logging.getLogger("raydium_swap")


def setup_logging(config: LoggingSettings) -> logging.Logger:
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, config.level.value))
    root_logger.handlers.clear()

    formatter = logging.Formatter(config.format, datefmt=config.date_format)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if config.file_enabled:
        config.file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            config.file_path,
            maxBytes=config.file_max_bytes,
            backupCount=config.file_backup_count,
            encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(file_handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    return logger


def load_settings() -> Settings:
    try:
        return get_settings()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings: {e}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="raydium-swap", description="Quote and plan Raydium AMM v4 swaps")
    sub = parser.add_subparsers(dest="command", required=True)

    def add_swap_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("input_mint")
        p.add_argument("output_mint")
        p.add_argument("amount", type=int, help="raw token units")
        p.add_argument("--slippage-bps", type=int, default=None)
        p.add_argument("--exact-out", action="store_true", help="amount is the desired output")
        p.add_argument("--pool", default=None, help="skip discovery and use this pool id")

    add_swap_args(sub.add_parser("quote", help="print a quote"))
    plan = sub.add_parser("plan", help="print the instruction plan for a quote")
    add_swap_args(plan)
    plan.add_argument("--payer", required=True)
    plan.add_argument("--destination", default=None, help="destination token account")
    return parser


def format_quote(quote: Quote) -> str:
    if quote.amount_specified_is_input:
        amount_in, amount_out = quote.amount, quote.other_amount
        bound = f"min out:   {quote.other_amount_threshold}"
    else:
        amount_in, amount_out = quote.other_amount, quote.amount
        bound = f"max in:    {quote.other_amount_threshold}"
    lines = [
        f"pool:      {quote.pool_id}",
        f"in:        {amount_in} {quote.input_mint} ({amount_in / 10 ** quote.input_decimals:.6f})",
        f"out:       {amount_out} {quote.output_mint} ({amount_out / 10 ** quote.output_decimals:.6f})",
        bound,
        f"mode:      {'ExactIn' if quote.amount_specified_is_input else 'ExactOut'}",
    ]
    return "\n".join(lines)


async def run(args: argparse.Namespace, settings: Settings) -> int:
    slippage = settings.swap.slippage_bps if args.slippage_bps is None else args.slippage_bps
    request = SwapRequest(
        input_mint=validate_pubkey(args.input_mint, "input_mint"),
        output_mint=validate_pubkey(args.output_mint, "output_mint"),
        amount=args.amount,
        slippage_bps=slippage,
        mode=SwapMode.EXACT_OUT if args.exact_out else SwapMode.EXACT_IN,
        pool_override=validate_pubkey(args.pool, "pool") if args.pool else None,
    )

    rpc_url = str(settings.solana.rpc_url)
    async with AsyncClient(rpc_url, timeout=settings.solana.timeout) as client, RaydiumApiClient(
        str(settings.raydium_api.base_url), timeout=settings.raydium_api.timeout
    ) as api:
        simulator = RpcTransactionSimulator(client, commitment=settings.solana.commitment)
        amm = RaydiumAmm(
            client,
            settings.swap.to_swap_config(),
            discovery=api,
            simulator=simulator,
            market_keys_by_api=settings.raydium_api.market_keys_by_api,
            compute_unit_margin=settings.swap.compute_unit_margin,
        )
        quote = await amm.quote(request)
        print(format_quote(quote))

        if args.command == "quote":
            return 0

        payer: Pubkey = validate_pubkey(args.payer, "payer")
        destination = validate_pubkey(args.destination, "destination") if args.destination else None
        plan = await amm.plan(quote, payer, SwapConfigOverrides(destination_token_account=destination))
        print("instructions:")
        for i, ix in enumerate(plan.build_instructions()):
            print(f"  {i:2d} {ix.program_id} ({len(ix.accounts)} accounts, {len(bytes(ix.data))} bytes)")
        return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings()
    except ConfigurationError as e:
        print(str(e), file=sys.stderr)
        return 2

    setup_logging(settings.logging)
    try:
        return asyncio.run(run(args, settings))
    except RaydiumSwapError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
