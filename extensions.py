"""Shared extension instances.

Kept in one module so models and blueprints can import them without importing
app.py (prevents circular imports).
"""

from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from sqlalchemy.orm import declarative_base


Base = declarative_base()
LocalBase = declarative_base()

cors = CORS()
limiter = Limiter(key_func=get_remote_address)
