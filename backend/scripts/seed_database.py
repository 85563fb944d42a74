# backend/scripts/seed_database.py
import asyncio
import logging
import random
from datetime import date, time, timedelta
from typing import List

from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

# Add project root to sys.path to allow importing healthcare_portal
import sys
from pathlib import Path

backend_dir = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(backend_dir))

from healthcare_portal.config.constants import Gender, Role  # noqa: E402
from healthcare_portal.config.settings import settings as app_settings  # noqa: E402
from healthcare_portal.core.auth import get_password_hash  # noqa: E402
from healthcare_portal.db.base import get_engine, get_session_factory  # noqa: E402
from healthcare_portal.db.models import (  # noqa: E402
    DepartmentModel,
    DoctorModel,
    DoctorScheduleModel,
    PatientModel,
    UserModel,
)
from healthcare_portal.db.session import background_db_session, set_global_session_factory  # noqa: E402

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("seed_database")

# --- Configuration for Seed Data ---
NUM_DOCTORS_PER_DEPARTMENT = 3
NUM_PATIENTS = 20
SCHEDULE_DAYS_AHEAD = 7
COMMON_PASSWORD = "TestPassword123!"
COMMON_PASSWORD_HASH = get_password_hash(COMMON_PASSWORD)
ADMIN_EMAIL = "admin@example.com"

DEPARTMENTS = {
    "Cardiology": "Heart and blood vessel care",
    "Neurology": "Brain, spine and nerve disorders",
    "Pediatrics": "Care for infants, children and adolescents",
    "Orthopedics": "Bones, joints and muscles",
    "Dermatology": "Skin, hair and nails",
}

FIRST_NAMES = [
    "Ahmad", "Rita", "Karim", "Maya", "Omar", "Nour", "Jad", "Sara",
    "Elie", "Lina", "Tarek", "Yara", "Fadi", "Dina", "Walid", "Hiba",
]

LAST_NAMES = [
    "Khoury", "Haddad", "Nassar", "Saad", "Fares", "Mansour", "Habib",
    "Saliba", "Barakat", "Maalouf", "Karam", "Sarkis", "Azar", "Tannous",
]

# Morning and afternoon clinic windows
CLINIC_WINDOWS = [(time(9, 0), time(12, 0)), (time(14, 0), time(17, 0))]


# --- Helper Functions ---
def random_dob(start_year=1950, end_year=2005) -> date:
    year = random.randint(start_year, end_year)
    month = random.randint(1, 12)
    day = random.randint(1, 28)  # Keep it simple, avoid month-specific day counts
    return date(year, month, day)


def random_phone() -> str:
    return f"+961 {random.randint(1, 9)} {random.randint(100, 999)} {random.randint(100, 999)}"


def random_address(i: int) -> str:
    return f"{random.randint(1, 300)} Hamra St, Apt {i}, Beirut"


def _user(email: str, role: Role, first_name: str, last_name: str) -> UserModel:
    return UserModel(
        email=email,
        password_hash=COMMON_PASSWORD_HASH,
        first_name=first_name,
        last_name=last_name,
        phone_number=random_phone(),
        role=role.value,
    )


async def clear_data(db: AsyncSession):
    logger.warning("Clearing existing data from tables...")
    for table in (
        "feedback",
        "medical_records",
        "appointments",
        "doctor_schedules",
        "patients",
        "doctors",
        "otps",
        "otp_requests",
    ):
        await db.execute(text(f"DELETE FROM {table};"))
    await db.execute(text("DELETE FROM users WHERE role IN ('PATIENT', 'DOCTOR');"))  # Keep admins
    await db.execute(text("DELETE FROM departments;"))
    await db.commit()
    logger.info("Relevant data cleared.")


async def seed_all_data(db: AsyncSession):
    # 1. Admin
    if (await db.execute(select(UserModel.id).where(UserModel.email == ADMIN_EMAIL))).scalar_one_or_none() is None:
        db.add(_user(ADMIN_EMAIL, Role.ADMIN, "System", "Admin"))
        logger.info(f"Added admin {ADMIN_EMAIL}")

    # 2. Departments and doctors
    doctor_ids: List[int] = []
    for dept_index, (name, description) in enumerate(DEPARTMENTS.items()):
        department = DepartmentModel(name=name, description=description)
        db.add(department)
        await db.flush()
        for i in range(NUM_DOCTORS_PER_DEPARTMENT):
            first_name = random.choice(FIRST_NAMES)
            last_name = random.choice(LAST_NAMES)
            email = f"doctor.{first_name.lower()}.{last_name.lower()}{dept_index}{i}@example.com"
            user = _user(email, Role.DOCTOR, first_name, last_name)
            db.add(user)
            await db.flush()
            db.add(
                DoctorModel(
                    user_id=user.id,
                    specialization=name,
                    license_number=f"LIC-{dept_index:02d}{i:03d}",
                    experience_years=random.randint(1, 30),
                    department_id=department.id,
                )
            )
            doctor_ids.append(user.id)
    logger.info(f"Added {len(doctor_ids)} doctors across {len(DEPARTMENTS)} departments")

    # 3. Patients
    for i in range(NUM_PATIENTS):
        first_name = random.choice(FIRST_NAMES)
        last_name = random.choice(LAST_NAMES)
        email = f"patient.{first_name.lower()}.{last_name.lower()}{i + 1}@example.com"
        user = _user(email, Role.PATIENT, first_name, last_name)
        db.add(user)
        await db.flush()
        db.add(
            PatientModel(
                user_id=user.id,
                date_of_birth=random_dob(),
                gender=random.choice(list(Gender)).value,
                address=random_address(i + 1),
            )
        )
    logger.info(f"Added {NUM_PATIENTS} patients")

    # 4. Schedules for the coming week, two non-overlapping windows per weekday
    today = date.today()
    schedule_count = 0
    for doctor_id in doctor_ids:
        for offset in range(1, SCHEDULE_DAYS_AHEAD + 1):
            day = today + timedelta(days=offset)
            if day.weekday() >= 5:
                continue
            for start, end in CLINIC_WINDOWS:
                db.add(DoctorScheduleModel(doctor_id=doctor_id, date=day, start_time=start, end_time=end))
                schedule_count += 1
    logger.info(f"Added {schedule_count} schedules")

    try:
        await db.commit()
        logger.info("Seed data committed.")
    except IntegrityError as e:
        await db.rollback()
        logger.error(f"Integrity error committing seed data: {e.orig}", exc_info=True)
        raise


async def main():
    engine = await get_engine(str(app_settings.database_url))
    set_global_session_factory(await get_session_factory(engine))
    try:
        async with background_db_session() as db:
            await clear_data(db)
            await seed_all_data(db)
    finally:
        await engine.dispose()
    logger.info(f"Done. Every seeded account uses the password {COMMON_PASSWORD!r}.")


if __name__ == "__main__":
    asyncio.run(main())
