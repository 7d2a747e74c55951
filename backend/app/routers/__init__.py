from app.routers import admin, health, leaderboard, results, tests

__all__ = [
    "admin",
    "health",
    "leaderboard",
    "results",
    "tests",
]
