"""
Приведение "сырых" значений (ячейки Excel, строки формы) к значениям клиента.

Все правила подстановки значений по умолчанию живут здесь: импорт вызывает их
для каждой строки, ручное редактирование проходит ту же схему ClientCreate.
"""
import math
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Optional

from salescrm.database.models import utcnow
from salescrm.services.reference_data import (
    STAGES, STATUSES, PRIORITIES, SOURCES,
    DEFAULT_STAGE, DEFAULT_PRIORITY, DEFAULT_SERVICE, DEFAULT_RESPONSIBLE_PERSON, FALLBACK_SOURCE,
)

FOLLOW_UP_INTERVAL = timedelta(days=7)

_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%m/%d/%Y",
    "%d.%m.%Y",
)


def as_str(val: object) -> str:
    """Ячейка -> строка без пробелов по краям. None -> ""."""
    if val is None:
        return ""
    if isinstance(val, float) and val.is_integer():
        # Excel хранит числа как float: 12345.0 -> "12345"
        return str(int(val))
    return str(val).strip()


def normalize_choice(raw: object, choices: Iterable[str], default: Optional[str]) -> Optional[str]:
    """Значение из закрытого списка или default."""
    s = as_str(raw)
    if not s:
        return default
    return s if s in set(choices) else default


def normalize_stage(raw: object) -> str:
    return normalize_choice(raw, STAGES, DEFAULT_STAGE)


def normalize_status(raw: object) -> Optional[str]:
    """Пусто или неизвестный статус -> None (без ошибки)."""
    return normalize_choice(raw, STATUSES, None)


def normalize_priority(raw: object) -> str:
    return normalize_choice(raw, PRIORITIES, DEFAULT_PRIORITY)


def normalize_service(raw: object) -> str:
    """Свободный текст; пусто -> Product Development."""
    return as_str(raw) or DEFAULT_SERVICE


def normalize_responsible_person(raw: object) -> str:
    return as_str(raw) or DEFAULT_RESPONSIBLE_PERSON


def normalize_source(raw: object) -> Optional[str]:
    """Пусто -> не задан; неизвестный источник -> Other."""
    s = as_str(raw)
    if not s:
        return None
    return s if s in SOURCES else FALLBACK_SOURCE


def _to_float(raw: object) -> Optional[float]:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        num = float(raw)
    else:
        s = as_str(raw).replace(",", "")
        if not s:
            return None
        try:
            num = float(s)
        except ValueError:
            return None
    if math.isnan(num) or math.isinf(num):
        return None
    return num


def parse_value(raw: object) -> int:
    """Сумма сделки: не число / пусто -> 0, отрицательное -> 0."""
    num = _to_float(raw)
    if num is None:
        return 0
    return int(round(max(0.0, num)))


def parse_win_probability(raw: object) -> Optional[int]:
    """Вероятность закрытия: "75%" или 75 -> int в [0, 100]; мусор -> None."""
    if isinstance(raw, str):
        raw = raw.strip()
        if raw.endswith("%"):
            raw = raw[:-1].strip()
    num = _to_float(raw)
    if num is None:
        return None
    return int(round(min(100.0, max(0.0, num))))


def parse_datetime(raw: object) -> Optional[datetime]:
    """Дата из ячейки (datetime/date/строка ISO и пр.) или None."""
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return to_naive_utc(raw)
    if isinstance(raw, date):
        return datetime.combine(raw, time.min)
    s = as_str(raw)
    if not s:
        return None
    try:
        parsed = datetime.fromisoformat(s.replace("Z", "+00:00"))
        return to_naive_utc(parsed)
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt)
        except ValueError:
            continue
    return None


def to_naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Aware datetime -> naive UTC (колонки DateTime без таймзоны); naive не трогаем."""
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_follow_ups(last_raw: object, next_raw: object, now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """Неверные/пустые даты -> сейчас и сейчас + 7 дней."""
    now = now or utcnow()
    last = parse_datetime(last_raw) or now
    nxt = parse_datetime(next_raw) or (now + FOLLOW_UP_INTERVAL)
    return last, nxt
