"""
Flask extension instances for the catalog.

They are created unbound here and attached to the application in
`create_app()`, so models and blueprints can import them at module level.
"""

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_wtf import CSRFProtect

db = SQLAlchemy()  # models, sessions, create_all at boot
migrate = Migrate()  # `flask db` schema migrations
login_manager = LoginManager()  # admin console sessions
csrf = CSRFProtect()  # form posts; chunk uploads send X-CSRFToken
