"""Command line entry point for Builder ID claims"""
import argparse
import asyncio
import json
import logging
import sys
import traceback
from typing import List, Optional

from fixr_builder_id.config import SECRET_FIELDS, Settings, settings
from fixr_builder_id.db import db
from fixr_builder_id.errors import ClaimError, WalletProviderError
from fixr_builder_id.models.claim import ClaimSession, ClaimState
from fixr_builder_id.orchestrator import ClaimOrchestrator
from fixr_builder_id.services.fixr_api import FixrClaimClient
from fixr_builder_id.services.storage import ClaimRecordStore, SqlClaimStore
from fixr_builder_id.services.wallet import select_wallet_provider

logging.basicConfig(level=logging.INFO, format='%(message)s')
logger = logging.getLogger(__name__)

def build_store(config: Settings) -> ClaimRecordStore:
    """Claim record backend chosen by CLAIM_STORE"""
    if config.CLAIM_STORE == 'fixr':
        return FixrClaimClient(config.FIXR_API_URL, timeout=config.HTTP_TIMEOUT)
    if config.CLAIM_STORE == 'sql':
        db.init(config.DATABASE_URL)
        return SqlClaimStore(db)
    raise ValueError(f"Unsupported CLAIM_STORE: {config.CLAIM_STORE}")

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='fixr_builder_id', description='Builder ID claim tools')
    commands = parser.add_subparsers(dest='command', required=True)

    check = commands.add_parser('check', help='Show the Builder ID recorded for a FID')
    check.add_argument('fid', type=int)

    holders = commands.add_parser('holders', help='List Builder ID holders, newest first')
    holders.add_argument('--limit', type=int, default=20)
    holders.add_argument('--offset', type=int, default=0)

    message = commands.add_parser('message', help='Verify a wallet and print its claim message')
    message.add_argument('fid', type=int)
    message.add_argument('wallet')

    claim = commands.add_parser('claim', help='Claim and mint with the configured wallet')
    claim.add_argument('fid', type=int)
    claim.add_argument('--image-url', default='')

    record = commands.add_parser('record', help='Retry recording a mint with a known tx hash')
    record.add_argument('fid', type=int)
    record.add_argument('wallet')
    record.add_argument('tx_hash')
    record.add_argument('--image-url', default='')

    return parser

def print_json(data) -> None:
    print(json.dumps(data, indent=2))

def report(session: ClaimSession) -> int:
    print_json(session.to_dict())
    if session.cancelled:
        logger.info(f"Claim for FID {session.fid} cancelled in the wallet")
        return 0
    if session.state == ClaimState.FAILED:
        logger.error(f"Claim failed: {session.error.code.value}: {session.error.message}")
        return 1
    return 0

async def run_command(args: argparse.Namespace, config: Settings) -> int:
    store = build_store(config)

    if args.command == 'check':
        record = await asyncio.to_thread(store.get_by_fid, args.fid)
        if record is None:
            print(f"Builder ID #{args.fid} has not been claimed yet.")
        else:
            print_json(record.to_client())
        return 0

    if args.command == 'holders':
        records = await asyncio.to_thread(store.list_holders, args.limit, args.offset)
        total = await asyncio.to_thread(store.count)
        print_json({'total': total, 'holders': [record.to_client() for record in records]})
        return 0

    wallet = select_wallet_provider(config)
    orchestrator = ClaimOrchestrator.from_settings(config, store, wallet)
    try:
        if args.command == 'message':
            session = await orchestrator.start(args.fid, args.wallet)
            if session.state == ClaimState.AWAITING_SUBMISSION:
                print(session.message)
                print(f"\nTimestamp: {session.timestamp}")
                return 0
            return report(session)

        if args.command == 'claim':
            try:
                accounts = await wallet.request_accounts()
            except WalletProviderError as e:
                if e.code == WalletProviderError.USER_REJECTED:
                    logger.info("Wallet connection cancelled")
                    return 0
                logger.error(f"Could not read wallet accounts: {e}")
                return 1
            if not accounts:
                logger.error("Wallet returned no accounts")
                return 1
            session = await orchestrator.start(args.fid, accounts[0], image_url=args.image_url)
            if session.state == ClaimState.AWAITING_SUBMISSION:
                session = await orchestrator.request_signature(session)
            if session.state == ClaimState.AWAITING_SUBMISSION:
                session = await orchestrator.send(session)
            return report(session)

        if args.command == 'record':
            session = await orchestrator.record_claim(
                args.fid, args.wallet, args.tx_hash, image_url=args.image_url
            )
            return report(session)
    finally:
        await wallet.aclose()
        await orchestrator.identity.aclose()
        if orchestrator.stats is not None:
            await orchestrator.stats.aclose()

    return 1

def run(argv: Optional[List[str]] = None) -> None:
    """Parse arguments and run one command."""
    args = build_parser().parse_args(argv)
    try:
        safe_config = settings.model_dump(exclude=SECRET_FIELDS)
        logger.info("Using configuration:")
        logger.info(json.dumps(safe_config, indent=2))

        exit_code = asyncio.run(run_command(args, settings))
    except ClaimError as e:
        logger.error(f"{e.code.value}: {e.message}")
        exit_code = 1
    except Exception as e:
        logger.error(f"Error running {args.command}: {e}")
        traceback.print_exc()
        exit_code = 1
    finally:
        db.dispose()

    sys.exit(exit_code)

if __name__ == "__main__":
    run()
