from app.db.mongo import get_database
from typing import Any, Dict, List
import logging

logger = logging.getLogger(__name__)

class DashboardService:
    def __init__(self):
        self.documents_collection = "documents"
        self.billing_collection = "billing"

    async def get_collection(self, name: str):
        db = await get_database()
        return db[name]

    async def _list(self, name: str, user_id: str, sort_field: str, session=None) -> List[Dict[str, Any]]:
        collection = await self.get_collection(name)
        cursor = collection.find({"user_id": user_id}, session=session).sort(sort_field, -1)
        rows = []
        async for doc in cursor:
            doc["_id"] = str(doc["_id"])
            rows.append(doc)
        return rows

    async def get_user_documents(self, user_id: str, session=None) -> List[Dict[str, Any]]:
        """Documents of one user, newest upload first."""
        return await self._list(self.documents_collection, user_id, "uploaded_at", session=session)

    async def get_user_billing(self, user_id: str, session=None) -> List[Dict[str, Any]]:
        """Billing rows of one user, latest due date first."""
        return await self._list(self.billing_collection, user_id, "due_date", session=session)

dashboard_service = DashboardService()
