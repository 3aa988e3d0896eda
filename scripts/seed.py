import sys
from datetime import date, timedelta
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from nailbook.db import SessionLocal, init_db  # noqa: E402
from nailbook.models import Booking, Service, SpecialDay, User, WorkingHour  # noqa: E402
from nailbook.services import create_service, create_user, create_working_hour  # noqa: E402

DEFAULT_SERVICES = [
    ("Manicure Completa", "Cutilagem, lixamento, hidratação e esmaltação", 35.00, 60, "MANICURE"),
    ("Pedicure Completa", "Cutilagem, lixamento, hidratação e esmaltação", 40.00, 75, "PEDICURE"),
    ("Esmaltação em Gel", "Aplicação de esmalte em gel com secagem", 45.00, 45, "ESMALTACAO"),
    ("Decoração Simples", "Aplicação de decorações simples nas unhas", 15.00, 30, "DECORACAO"),
    ("Decoração Avançada", "Decorações complexas com pedras e desenhos", 25.00, 45, "DECORACAO"),
    ("Manicure + Pedicure", "Pacote completo de manicure e pedicure", 65.00, 120, "MANICURE"),
]

# Tuesday to Saturday, with a lunch break. Sunday is weekday 0.
DEFAULT_WEEK = {
    weekday: [("09:00", "12:00"), ("13:00", "18:00")] for weekday in (2, 3, 4, 5, 6)
}


def run_seed():
    print("--- Seeding nailbook database ---")
    init_db()
    with SessionLocal() as db:
        for model in (Booking, SpecialDay, WorkingHour, Service, User):
            db.query(model).delete()
        db.commit()

        admin = create_user(db, "Isabela", "admin@isa.com", "(11) 99999-9999", "admin123", role="ADMIN")
        client = create_user(db, "Maria Silva", "cliente@teste.com", "(11) 88888-8888", "cliente123")

        services = [
            create_service(db, name=name, description=desc, price=price, duration=duration, category=category)
            for name, desc, price, duration, category in DEFAULT_SERVICES
        ]

        for weekday, windows in DEFAULT_WEEK.items():
            for start, end in windows:
                create_working_hour(db, weekday, start, end)

        today = date.today()
        db.add_all(
            [
                Booking(
                    client_id=client.id,
                    service_id=services[0].id,
                    date=today.isoformat(),
                    time="14:00",
                    status="CONFIRMED",
                    notes="Preferência por esmalte rosa",
                ),
                Booking(
                    client_id=client.id,
                    service_id=services[2].id,
                    date=(today + timedelta(days=1)).isoformat(),
                    time="16:00",
                    status="PENDING",
                ),
            ]
        )
        db.commit()

        print(f"Admin created: {admin.email}")
        print(f"Client created: {client.email}")
        print(f"{len(services)} services created")
        print("2 sample bookings created")


if __name__ == "__main__":
    try:
        run_seed()
    except Exception as e:
        print(f"ERROR: {e}")
        sys.exit(1)
