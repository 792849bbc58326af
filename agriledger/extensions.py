# Overview: Flask extension instances for database, migrations and change events.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

from .services.notifications import EventBus

db = SQLAlchemy()
migrate = Migrate()
events = EventBus()
