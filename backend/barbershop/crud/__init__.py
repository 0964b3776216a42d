from .crud_barber import barber
from .crud_service import service
from .crud_booking import booking
from .crud_review import review
from . import crud_user
