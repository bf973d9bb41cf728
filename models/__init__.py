from .db import db
from .user import User
from .session import Session
from .audit_log import AuditLog
from .temple import Temple, TempleService, TempleTiming
from .booking import Booking
from .basket_item import BasketItem
