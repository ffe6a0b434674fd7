"""
Stage History: интервалы пребывания клиента в стадиях воронки.

Инвариант: у клиента не более одной открытой записи (exited_at IS NULL),
и её stage совпадает с текущей стадией клиента.

record_create / record_transition не делают commit: они выполняются в транзакции
вызывающего кода (создание/обновление клиента), чтобы изменение стадии и история
фиксировались вместе.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import select, func, distinct
from sqlalchemy.ext.asyncio import AsyncSession

from salescrm.database.models import Client, ClientStageHistory, utcnow
from salescrm.services.reference_data import stage_order

log = logging.getLogger(__name__)


def _duration_seconds(entered_at: datetime, exited_at: datetime) -> int:
    return max(0, int((exited_at - entered_at).total_seconds()))


async def record_create(
    db: AsyncSession,
    client: Client,
    now: Optional[datetime] = None,
) -> ClientStageHistory:
    """Открыть первую запись истории для только что созданного клиента."""
    entry = ClientStageHistory(
        client_id=client.id,
        stage=client.stage,
        entered_at=now or utcnow(),
    )
    db.add(entry)
    await db.flush()
    log.info("[STAGE] client=%s entered %r", client.id, client.stage)
    return entry


async def get_open_entries(db: AsyncSession, client_id: str) -> List[ClientStageHistory]:
    result = await db.execute(
        select(ClientStageHistory)
        .where(
            ClientStageHistory.client_id == client_id,
            ClientStageHistory.exited_at.is_(None),
        )
        .order_by(ClientStageHistory.entered_at.asc())
    )
    return list(result.scalars().all())


async def record_transition(
    db: AsyncSession,
    client_id: str,
    old_stage: str,
    new_stage: str,
    now: Optional[datetime] = None,
) -> Optional[ClientStageHistory]:
    """
    Закрыть открытую запись и открыть новую для new_stage.
    Ничего не делает, если стадия не изменилась.
    """
    if old_stage == new_stage:
        return None
    now = now or utcnow()

    open_entries = await get_open_entries(db, client_id)
    if not open_entries:
        log.warning("[STAGE] client=%s has no open history entry (was %r)", client_id, old_stage)
    elif len(open_entries) > 1:
        log.warning("[STAGE] client=%s had %s open entries, closing all", client_id, len(open_entries))
    for entry in open_entries:
        entry.exited_at = now
        entry.duration_seconds = _duration_seconds(entry.entered_at, now)

    new_entry = ClientStageHistory(client_id=client_id, stage=new_stage, entered_at=now)
    db.add(new_entry)
    await db.flush()
    log.info("[STAGE] client=%s %r -> %r", client_id, old_stage, new_stage)
    return new_entry


async def get_stage_history(db: AsyncSession, client_id: str) -> List[ClientStageHistory]:
    """История стадий клиента, новые записи первыми."""
    result = await db.execute(
        select(ClientStageHistory)
        .where(ClientStageHistory.client_id == client_id)
        .order_by(ClientStageHistory.entered_at.desc(), ClientStageHistory.exited_at.is_(None).desc())
    )
    return list(result.scalars().all())


async def backfill_stage_history(db: AsyncSession) -> int:
    """
    Открыть запись истории для каждого клиента, у которого её нет
    (entered_at = created_at клиента). Повторный вызов ничего не создаёт.
    """
    has_history = (
        select(ClientStageHistory.id)
        .where(ClientStageHistory.client_id == Client.id)
        .exists()
    )
    result = await db.execute(
        select(Client.id, Client.stage, Client.created_at).where(~has_history)
    )
    rows = result.all()
    for client_id, stage, created_at in rows:
        db.add(ClientStageHistory(client_id=client_id, stage=stage, entered_at=created_at))
    await db.commit()
    log.info("[STAGE] Backfilled %s clients", len(rows))
    return len(rows)


async def get_stage_analytics(db: AsyncSession) -> List[dict]:
    """
    По каждой стадии, встречающейся в истории:
    средняя длительность завершённых интервалов, число уникальных клиентов,
    число завершённых интервалов. В порядке воронки.
    """
    result = await db.execute(
        select(
            ClientStageHistory.stage,
            func.avg(ClientStageHistory.duration_seconds),
            func.count(distinct(ClientStageHistory.client_id)),
            func.count(ClientStageHistory.exited_at),
        ).group_by(ClientStageHistory.stage)
    )
    rows = []
    for stage, avg_seconds, total_clients, completed in result.all():
        rows.append({
            "stage": stage,
            "averageDurationSeconds": int(round(float(avg_seconds))) if avg_seconds is not None else 0,
            "totalClients": int(total_clients),
            "completedClients": int(completed),
        })
    rows.sort(key=lambda r: (stage_order(r["stage"]), r["stage"]))
    return rows


async def get_open_entries_by_client(db: AsyncSession) -> Dict[str, ClientStageHistory]:
    """client_id -> открытая запись (для отчёта о просроченных стадиях)."""
    result = await db.execute(
        select(ClientStageHistory)
        .where(ClientStageHistory.exited_at.is_(None))
        .order_by(ClientStageHistory.entered_at.asc())
    )
    return {entry.client_id: entry for entry in result.scalars().all()}
