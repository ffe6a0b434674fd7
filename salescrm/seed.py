"""
Демо-данные для пустой БД (SEED_DEMO_DATA=true)
"""
import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from salescrm.database import crud
from salescrm.database.models import Activity
from salescrm.schemas import ClientCreate

log = logging.getLogger(__name__)

DEMO_CLIENTS = [
    {
        "company_name": "Acme Corporation",
        "contact_person": "John Smith",
        "email": "john@acme.com",
        "phone": "+1 234-567-8900",
        "stage": "Qualified",
        "status": "Under Evaluation",
        "value": 250000,
        "priority": "High",
        "responsible_person": "Sarah Johnson",
        "country": "United States",
        "service": "CRM",
        "linkedin": "https://www.linkedin.com/in/johnsmith",
        "notes": "Interested in enterprise package. Decision maker meeting scheduled.",
        "source": "Referral",
        "last_follow_up": datetime(2025, 11, 15),
        "next_follow_up": datetime(2025, 11, 22),
        "activities": [
            ("Initial meeting", "Sarah Johnson", datetime(2025, 11, 5)),
            ("Proposal sent", "Mike Davis", datetime(2025, 11, 10)),
            ("Follow-up call completed", "Sarah Johnson", datetime(2025, 11, 15)),
        ],
    },
    {
        "company_name": "TechStart Inc",
        "contact_person": "Emily Chen",
        "email": "emily@techstart.com",
        "phone": "+1 555-123-4567",
        "stage": "Proposal Sent",
        "status": "Proposal Rejected",
        "value": 180000,
        "priority": "Medium",
        "responsible_person": "Tom Williams",
        "country": "Canada",
        "service": "ERP",
        "notes": "Looking for more flexible pricing options.",
        "source": "Website",
        "last_follow_up": datetime(2025, 11, 16),
        "next_follow_up": datetime(2025, 11, 23),
        "activities": [
            ("Proposal submitted", "Sarah Johnson", datetime(2025, 11, 10)),
            ("Pricing discussion", "Tom Williams", datetime(2025, 11, 16)),
        ],
    },
    {
        "company_name": "Global Solutions Ltd",
        "contact_person": "Robert Taylor",
        "email": "robert@globalsolutions.com",
        "phone": "+44 20 7946 0958",
        "stage": "Won",
        "status": None,
        "value": 420000,
        "priority": "High",
        "responsible_person": "Mike Davis",
        "country": "United Kingdom",
        "service": "Product Development",
        "linkedin": "https://www.linkedin.com/in/roberttaylor",
        "notes": "Contract signed. Awaiting project kick-off.",
        "source": "Event",
        "last_follow_up": datetime(2025, 11, 17),
        "next_follow_up": datetime(2025, 11, 24),
        "activities": [
            ("Final negotiations", "Sarah Johnson", datetime(2025, 11, 12)),
            ("Contract signed", "Mike Davis", datetime(2025, 11, 17)),
        ],
    },
    {
        "company_name": "Innovation Hub",
        "contact_person": "Lisa Anderson",
        "email": "lisa@innovationhub.com",
        "phone": "+61 2 5550 4567",
        "stage": "Lead",
        "status": None,
        "value": 95000,
        "priority": "Low",
        "responsible_person": "Tom Williams",
        "country": "Australia",
        "service": "Mobile Development",
        "notes": "Initial contact made. Needs more information.",
        "source": "Cold Call",
        "last_follow_up": datetime(2025, 11, 14),
        "next_follow_up": datetime(2025, 11, 21),
        "activities": [
            ("Discovery call", "Tom Williams", datetime(2025, 11, 14)),
        ],
    },
    {
        "company_name": "FutureTech Systems",
        "contact_person": "David Wu",
        "email": "david@futuretech.com",
        "phone": "+65 5550 0123",
        "stage": "Proposal Sent",
        "status": "In Negotiation",
        "value": 320000,
        "priority": "High",
        "responsible_person": "Sarah Johnson",
        "country": "Singapore",
        "service": "ITSM",
        "linkedin": "https://www.linkedin.com/in/davidwu",
        "notes": "Strong interest. Reviewing technical requirements.",
        "source": "LinkedIn",
        "last_follow_up": datetime(2025, 11, 18),
        "next_follow_up": datetime(2025, 11, 25),
        "activities": [
            ("Proposal sent", "Mike Davis", datetime(2025, 11, 15)),
            ("Technical review meeting", "Sarah Johnson", datetime(2025, 11, 18)),
        ],
    },
]


async def seed_demo_clients(db: AsyncSession) -> int:
    """Создать демо-клиентов с журналом действий. Возвращает количество."""
    for raw in DEMO_CLIENTS:
        raw = dict(raw)
        activities = raw.pop("activities")
        client = await crud.create_client(db, ClientCreate(**raw))
        for action, user_name, created_at in activities:
            user = await crud.get_or_create_user(db, user_name)
            db.add(Activity(client_id=client.id, user_id=user.id, action=action, created_at=created_at))
        await db.commit()
        log.info("[DB] Demo client: %s", client.company_name)
    return len(DEMO_CLIENTS)
