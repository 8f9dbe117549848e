from fastapi import APIRouter
from app.api.v1 import auth, notifications, payments, subscriptions, support, users

api_router = APIRouter()

# Include all v1 routers
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(subscriptions.router)
api_router.include_router(payments.router)
api_router.include_router(notifications.admin_router)
api_router.include_router(notifications.user_router)
api_router.include_router(support.router)
