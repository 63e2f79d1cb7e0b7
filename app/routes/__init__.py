from app.routes.webhooks import webhooks_router

__all__ = [
    "webhooks_router",
]
