"""Shared Flask extension singletons to avoid circular imports."""
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_wtf import CSRFProtect
from flask_login import LoginManager

from utils.mailer import Mailer
from utils.screening_provider import ScreeningGateway

# Initialize extensions without app; create_app will bind them.
csrf = CSRFProtect()
db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
# Outbound collaborators are bound once per app and swapped in tests via init_app.
mailer = Mailer()
screening = ScreeningGateway()
