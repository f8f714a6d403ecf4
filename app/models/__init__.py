# Fleet movements: database models
# Import all models here for SQLAlchemy discovery

from app.models.unit import Unit                     # noqa
from app.models.vehicle import Vehicle               # noqa
from app.models.movement import Movement             # noqa
from app.models.movement_log import MovementLog      # noqa
from app.models.alert import Alert                   # noqa
