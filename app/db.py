from motor.motor_asyncio import AsyncIOMotorClient
from config import settings


client = AsyncIOMotorClient(settings.MONGODB_URL)
db = client[settings.DATABASE_NAME]


shifts_collection = db.shifts
leave_requests_collection = db.leave_requests
tenant_settings_collection = db.tenant_settings
timesheets_collection = db.timesheets
