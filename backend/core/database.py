"""
SQLite database access for documents, inventory, anomalies and jobs.

Kept as a flat import point; the implementation lives in the db package.
"""
from .db import *  # noqa: F401,F403
from .db import __all__  # noqa: F401
