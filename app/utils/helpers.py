"""
Helper utilities
"""
from datetime import date, timedelta
from typing import Awaitable, Iterator
import asyncio
import re


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Safely divide two numbers"""
    try:
        return numerator / denominator if denominator != 0 else default
    except (TypeError, ZeroDivisionError):
        return default


def slugify(value: str) -> str:
    """URL-safe handle, the way Shopify derives them ("Acme Co." -> "acme-co")"""
    slug = re.sub(r"[^a-z0-9]+", "-", value.strip().lower())
    return slug.strip("-")


def iter_days(start: date, end: date) -> Iterator[date]:
    """Every calendar day from start to end, inclusive"""
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)


async def gather_or_cancel(*aws: Awaitable) -> list:
    """asyncio.gather that cancels the remaining awaitables as soon as one fails"""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
