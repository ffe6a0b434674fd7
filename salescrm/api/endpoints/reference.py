"""
Статические справочники для фронтенда
"""
from typing import Optional

from fastapi import APIRouter, Query

from salescrm.services.countries import search_countries
from salescrm.services.reference_data import PRIORITIES, SOURCES, STATUSES, stage_reference

router = APIRouter()


@router.get("/stages")
async def stages():
    """Стадии в порядке воронки: ожидаемая длительность и допустимые статусы."""
    return {
        "stages": stage_reference(),
        "statuses": STATUSES,
        "priorities": PRIORITIES,
        "sources": SOURCES,
    }


@router.get("/countries")
async def countries(q: Optional[str] = Query(None, description="Поиск по названию, коду или валюте")):
    return [
        {
            "name": c.name,
            "code": c.code,
            "currency": c.currency,
            "symbol": c.symbol,
            "exchangeRateToINR": c.rate_to_inr,
        }
        for c in search_countries(q or "")
    ]
