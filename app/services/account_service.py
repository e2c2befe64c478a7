from app.db.mongo import EMAIL_COLLATION, get_database
from bson import ObjectId
from bson.errors import InvalidId
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import logging

logger = logging.getLogger(__name__)

class AccountService:
    def __init__(self):
        self.collection_name = "users"

    async def get_collection(self):
        db = await get_database()
        return db[self.collection_name]

    async def get_by_email(self, email: str, session=None) -> Optional[Dict[str, Any]]:
        collection = await self.get_collection()
        return await collection.find_one({"email": email}, session=session, collation=EMAIL_COLLATION)

    async def get_by_id(self, user_id: str, session=None) -> Optional[Dict[str, Any]]:
        try:
            oid = ObjectId(user_id)
        except (InvalidId, TypeError):
            return None
        collection = await self.get_collection()
        return await collection.find_one({"_id": oid}, session=session)

    async def get_by_reset_token(self, token: str, session=None) -> Optional[Dict[str, Any]]:
        if not token:
            return None
        collection = await self.get_collection()
        return await collection.find_one({"reset_token": token}, session=session)

    async def get_by_billing_customer(self, customer_id: str, session=None) -> Optional[Dict[str, Any]]:
        if not customer_id:
            return None
        collection = await self.get_collection()
        return await collection.find_one({"billing_customer_id": customer_id}, session=session)

    async def set_reset_token(self, user_id, token: str, expires_at: datetime, session=None):
        collection = await self.get_collection()
        await collection.update_one(
            {"_id": user_id},
            {"$set": {"reset_token": token, "reset_token_expires": expires_at}},
            session=session
        )
        logger.info(f"Issued reset token for user {user_id}")

    async def set_totp_secret(self, user_id, token: str, secret: str, session=None) -> bool:
        """Store a TOTP secret for a pending account that has none, while its token is still valid."""
        collection = await self.get_collection()
        result = await collection.update_one(
            {"_id": user_id, "reset_token": token, "totp_secret": {"$in": [None, ""]}},
            {"$set": {"totp_secret": secret}},
            session=session
        )
        if result.matched_count:
            logger.info(f"Generated TOTP secret for user {user_id}")
        return result.matched_count > 0

    async def consume_reset_token(self, user_id, token: str, password_hash: str, session=None) -> bool:
        """
        Set the new password and clear the token in a single document update.

        The filter includes the token, so a token consumed concurrently
        matches nothing and False is returned.
        """
        collection = await self.get_collection()
        result = await collection.update_one(
            {"_id": user_id, "reset_token": token},
            {
                "$set": {
                    "password_hash": password_hash,
                    "mfa_setup_complete": True,
                    "active": True,
                    "updated_at": datetime.now(timezone.utc)
                },
                "$unset": {"reset_token": "", "reset_token_expires": ""}
            },
            session=session
        )
        if result.matched_count == 0:
            logger.warning(f"Reset token for user {user_id} was already consumed")
            return False
        logger.info(f"Consumed reset token for user {user_id}")
        return True

    async def update_password_hash(self, user_id, password_hash: str, session=None) -> bool:
        collection = await self.get_collection()
        result = await collection.update_one(
            {"_id": user_id},
            {"$set": {"password_hash": password_hash, "updated_at": datetime.now(timezone.utc)}},
            session=session
        )
        return result.matched_count > 0

account_service = AccountService()
