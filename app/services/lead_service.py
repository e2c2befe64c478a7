from app.db.mongo import get_database
from datetime import datetime, timezone
from typing import Any, Dict
import logging

logger = logging.getLogger(__name__)

class LeadService:
    def __init__(self):
        self.collection_name = "leads"

    async def get_collection(self):
        db = await get_database()
        return db[self.collection_name]

    async def create_lead(self, name: str, email: str, message: str, session=None) -> Dict[str, Any]:
        """Store a contact form submission."""
        collection = await self.get_collection()
        lead = {
            "name": name,
            "email": email,
            "message": message,
            "created_at": datetime.now(timezone.utc)
        }
        result = await collection.insert_one(lead, session=session)
        lead["_id"] = str(result.inserted_id)
        logger.info(f"Registered lead {lead['_id']}")
        return lead

lead_service = LeadService()
