"""
Imports every model so Base.metadata knows all tables.
Used by Database.create_all and Alembic; models must not import this module.
"""

from app.db.models.user import User, RunnerProfile  # noqa: F401
from app.db.models.job import Job  # noqa: F401
from app.db.models.payment import Payment  # noqa: F401
from app.db.models.earning import RunnerEarning  # noqa: F401
from app.db.models.review import Review  # noqa: F401
