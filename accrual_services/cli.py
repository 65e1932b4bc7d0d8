"""
accrual-ledger -- operator command line.

Usage:
    accrual-ledger init-db
    accrual-ledger distribute investment
    accrual-ledger cooldown live_trade
    accrual-ledger reconcile [--owner UUID]
    accrual-ledger scheduler [--ticks N]

Global options:
    --config PATH   settings override file (else $ACCRUAL_LEDGER_CONFIG)
    --db-url URL    database URL (else $DATABASE_URL, else settings)

Exit status is 0 on success, 1 on a ledger error, 2 when a distribution
run was rejected by its cooldown and 3 when reconciliation found drift.
"""

from __future__ import annotations

import argparse
import os
import sys
import time
from typing import Sequence
from uuid import UUID

from accrual_config import DATABASE_URL_ENV, get_settings
from accrual_config.schema import LedgerSettings
from accrual_kernel.db.engine import build_engine, create_tables, unit_of_work
from accrual_kernel.domain.values import ContractClass
from accrual_kernel.exceptions import AccrualLedgerError, OnCooldownError
from accrual_kernel.services.cooldown_service import format_remaining

from accrual_services.container import LedgerServices

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_COOLDOWN = 2
EXIT_DRIFT = 3


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="accrual-ledger",
        description="Accrual ledger operations.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    p.add_argument("--config", default=None, help="Settings override file")
    p.add_argument("--db-url", default=None, help="Database URL")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create missing tables")

    dist = sub.add_parser("distribute", help="Run distribution for one contract class")
    dist.add_argument("contract_class", help="investment or live_trade")
    dist.add_argument("--actor", type=UUID, default=None, help="Actor UUID for attribution")

    cool = sub.add_parser("cooldown", help="Show a contract class's cooldown")
    cool.add_argument("contract_class")

    rec = sub.add_parser("reconcile", help="Rebuild balances from the transaction log")
    rec.add_argument("--owner", type=UUID, default=None, help="Only this owner")

    sched = sub.add_parser("scheduler", help="Run the polling scheduler in the foreground")
    sched.add_argument(
        "--ticks", type=int, default=None, help="Stop after N ticks (default: run until interrupted)"
    )
    return p.parse_args(argv)


def _settings(args: argparse.Namespace) -> LedgerSettings:
    environ = None
    if args.db_url:
        environ = {**os.environ, DATABASE_URL_ENV: args.db_url}
    return get_settings(args.config, environ)


def _services(args: argparse.Namespace) -> LedgerServices:
    return LedgerServices.from_settings(_settings(args))


def _cmd_init_db(args: argparse.Namespace) -> int:
    settings = _settings(args)
    engine = build_engine(settings.database.url, echo=settings.database.echo)
    create_tables(engine)
    engine.dispose()
    print(f"Tables created on {settings.database.url}")
    return EXIT_OK


def _cmd_distribute(args: argparse.Namespace) -> int:
    services = _services(args)
    try:
        summary = services.orchestrator.run_distribution(args.contract_class, actor_id=args.actor)
    except OnCooldownError as exc:
        print(
            f"{exc.contract_class} is on cooldown: {format_remaining(exc.remaining_seconds)} "
            f"remaining (next run at {exc.next_allowed_at})"
        )
        return EXIT_COOLDOWN

    print(f"Run {summary.run_id} ({summary.contract_class.value})")
    print(f"  processed contracts: {summary.processed_contracts}")
    print(f"  periods credited:    {summary.periods_credited}")
    print(f"  total amount:        {summary.total_amount}")
    print(f"  completed contracts: {summary.completed_contracts}")
    print(f"  skipped:             {summary.skipped}")
    print(f"  errors:              {summary.errors}")
    for line in summary.details:
        print(f"    {line}")
    return EXIT_OK if summary.errors == 0 else EXIT_ERROR


def _cmd_cooldown(args: argparse.Namespace) -> int:
    services = _services(args)
    contract_class = ContractClass.parse(args.contract_class)
    window = services.orchestrator.cooldown_window(contract_class)
    with unit_of_work(services.session_factory, "cooldown_status") as session:
        status = services.cooldowns_for(session).status(contract_class, window)
    if status.on_cooldown:
        print(
            f"{status.contract_class.value}: on cooldown, "
            f"{format_remaining(status.remaining_seconds)} remaining "
            f"(next run at {status.next_allowed_at.isoformat()})"
        )
    else:
        last = status.last_run_at.isoformat() if status.last_run_at else "never"
        print(f"{status.contract_class.value}: ready (last run {last})")
    return EXIT_OK


def _cmd_reconcile(args: argparse.Namespace) -> int:
    services = _services(args)
    reconciliation = services.reconciliation
    if args.owner is not None:
        reports = [reconciliation.verify_owner(args.owner)]
        contracts = []
    else:
        reports, contracts = reconciliation.verify_all()

    drifted = False
    for report in reports:
        if report.balanced:
            print(f"{report.owner_id}: ok ({report.transaction_count} transactions)")
            continue
        drifted = True
        print(f"{report.owner_id}: DRIFT")
        for d in report.drift:
            print(f"    {d.component.value}: stored {d.stored} derived {d.derived}")
    for contract in contracts:
        if not contract.balanced:
            drifted = True
            print(
                f"contract {contract.contract_id}: DRIFT periods "
                f"{contract.cached_periods}/{contract.recorded_periods} profit "
                f"{contract.cached_profit}/{contract.recorded_profit}/{contract.ledger_profit}"
            )
    return EXIT_DRIFT if drifted else EXIT_OK


def _cmd_scheduler(args: argparse.Namespace) -> int:
    services = _services(args)
    scheduler = services.create_scheduler()
    if args.ticks is not None:
        for _ in range(args.ticks):
            for summary in scheduler.tick():
                print(
                    f"{summary.contract_class.value}: {summary.periods_credited} periods, "
                    f"{summary.total_amount} credited, {summary.errors} errors"
                )
        return EXIT_OK

    scheduler.start()
    try:
        while scheduler.is_running:
            time.sleep(1.0)
    except KeyboardInterrupt:
        print("Stopping scheduler...")
    finally:
        scheduler.stop()
    return EXIT_OK


_COMMANDS = {
    "init-db": _cmd_init_db,
    "distribute": _cmd_distribute,
    "cooldown": _cmd_cooldown,
    "reconcile": _cmd_reconcile,
    "scheduler": _cmd_scheduler,
}


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    try:
        return _COMMANDS[args.command](args)
    except AccrualLedgerError as exc:
        print(f"ERROR [{exc.code}]: {exc}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
