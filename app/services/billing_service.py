from app.db.mongo import get_database
from datetime import datetime, timezone
from typing import Iterable, Optional
import logging
import re

logger = logging.getLogger(__name__)

class BillingService:
    def __init__(self):
        self.collection_name = "billing"

    async def get_collection(self):
        db = await get_database()
        return db[self.collection_name]

    async def create_pending(
        self,
        user_id: str,
        payment_id: str,
        subscription_id: Optional[str],
        amount: Optional[float],
        payment_link: Optional[str],
        due_date: Optional[datetime],
        description: Optional[str],
        session=None
    ):
        collection = await self.get_collection()
        row = {
            "user_id": user_id,
            "payment_id": payment_id,
            "subscription_id": subscription_id,
            "amount": amount,
            "status": "PENDING",
            "payment_link": payment_link,
            "due_date": due_date,
            "description": description,
            "created_at": datetime.now(timezone.utc)
        }
        await collection.insert_one(row, session=session)
        logger.info(f"Created pending billing row {payment_id} for user {user_id}")
        return row

    async def mark_paid(self, identifiers: Iterable[str], session=None) -> int:
        """
        Mark paid every row whose stored payment id, ignoring surrounding
        whitespace, equals one of `identifiers`. Returns the number of rows updated.
        """
        ids = {i.strip() for i in identifiers if i and i.strip()}
        if not ids:
            return 0
        patterns = [re.compile(rf"^\s*{re.escape(i)}\s*$") for i in sorted(ids)]
        collection = await self.get_collection()
        result = await collection.update_many(
            {"payment_id": {"$in": patterns}},
            {"$set": {"status": "PAID", "paid_at": datetime.now(timezone.utc)}},
            session=session
        )
        logger.info(f"Marked {result.modified_count} billing rows paid for {sorted(ids)}")
        return result.modified_count

billing_service = BillingService()
