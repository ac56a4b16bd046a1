#!/usr/bin/env python3
"""Remove all Breeze integration data from the order store.

Deletes cached customer links and clears the customer id, payment page id
and return token from every order. Orders, notes and payment statuses stay.
Run when the integration is removed.
"""
from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Callable

from core.logging_config import get_logger
from domain.common.unit_of_work import AbstractUnitOfWork


logger = get_logger("scripts.purge_breeze_data")


async def purge(uow_factory: Callable[[], AbstractUnitOfWork]) -> tuple[int, int]:
    """Returns (customer links deleted, orders cleared) in one transaction."""
    async with uow_factory() as uow:
        links = await uow.customers.purge()
        orders = await uow.orders.purge_breeze_metadata()
    logger.info("breeze_data_purged", customer_links=links, orders=orders)
    return links, orders


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--yes", action="store_true", help="confirm the purge")
    args = parser.parse_args(argv)
    if not args.yes:
        print("Refusing to purge without --yes", file=sys.stderr)
        return 2

    from infrastructure.unit_of_work import sqlalchemy_uow_factory

    links, orders = asyncio.run(purge(sqlalchemy_uow_factory()))
    print(f"Deleted {links} customer links, cleared Breeze data on {orders} orders")
    return 0


if __name__ == "__main__":
    sys.exit(main())
