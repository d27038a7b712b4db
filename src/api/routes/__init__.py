"""
Route modules for the API.

Each module exports a FastAPI APIRouter with endpoints
for a specific domain/feature.
"""

from api.routes import assistant
from api.routes import health

__all__ = ["assistant", "health"]
