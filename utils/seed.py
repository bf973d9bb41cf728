from datetime import time

from models import db
from models.temple import Temple, TempleService, TempleTiming

# (name, price, duration minutes)
DEMO_SERVICES = [
    ("Archana", 100, 15),
    ("Abhishekam", 500, 45),
    ("Sahasranama Puja", 300, 60),
    ("Annadanam Donation", 1000, 30),
]

def seed_demo_temple(name="Sri Venkateswara Temple"):
    """Create a temple open 06:00-12:00 daily with a few services (idempotent)."""
    temple = Temple.query.filter_by(name=name).first()
    if temple:
        return temple

    temple = Temple(name=name, city="Tirupati", state="Andhra Pradesh")
    db.session.add(temple)
    db.session.flush()

    for day in range(7):
        db.session.add(TempleTiming(
            temple_id=temple.id,
            day_of_week=day,
            opening_time=time(6, 0),
            closing_time=time(12, 0),
        ))
    db.session.add_all([
        TempleService(temple_id=temple.id, name=n, price=p, duration=d)
        for n, p, d in DEMO_SERVICES
    ])
    db.session.commit()
    return temple
