"""
Shambil School Core
Shared SQLAlchemy handle.

Every model module imports ``db`` from here; the Flask app factory binds it
with ``db.init_app(app)``.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
