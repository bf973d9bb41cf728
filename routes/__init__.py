from .health import health_bp
from .booking import booking_bp
from .basket import basket_bp
