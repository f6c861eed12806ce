"""
Nested computations and composite yields.

A parent routine yields child generator functions, lists and dicts of
pending work. Every child runs with the parent's context, and the members
of a list or dict run concurrently.
"""

import asyncio
import logging
import random

from pyresume import Context, delay, resume, run

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(message)s")


def lookup_price(sku, callback):
    # Stand-in for a callback-based client library
    loop = asyncio.get_running_loop()
    loop.call_later(random.uniform(0.01, 0.1), callback, None, len(sku) * 10)


def fetch_inventory(ctx):
    yield delay(0.05)
    ctx.log.append("inventory")
    return {sku: random.randint(0, 5) for sku in ctx.skus}


def fetch_prices(ctx):
    prices = yield {sku: resume(lookup_price)(sku) for sku in ctx.skus}
    ctx.log.append("prices")
    return prices


@run
def build_catalog(ctx):
    inventory, prices = yield [fetch_inventory, fetch_prices]
    ctx.log.append("catalog")
    return [
        {"sku": sku, "price": prices[sku], "in_stock": inventory[sku] > 0}
        for sku in ctx.skus
    ]


async def main():
    ctx = Context(skus=["apple", "pear", "fig"], log=[])

    catalog = await build_catalog.bind(ctx)()

    for entry in catalog:
        print(entry)
    print(f"Completion order: {ctx.log}")


if __name__ == "__main__":
    asyncio.run(main())
