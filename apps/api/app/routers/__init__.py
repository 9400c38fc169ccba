from .routes_mood import router as mood_router
from .routes_recommendations import router as recommendations_router

all_routers = [
    mood_router,
    recommendations_router,
]
