"""Demo catalogue: professors, subjects and students for a fresh database.

Run as a module to seed the configured database::

    python -m academia.seed            # create demo data
    python -m academia.seed --clear    # delete everything first
"""

import argparse
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List

from academia.gateway import RemoteGateway

logger = logging.getLogger(__name__)

DEMO_PROFESSORS: List[Dict[str, Any]] = [
    {"name": "Dr. Carl Rhodes", "email": "rhodes@university.edu", "max_subjects": 3},
    {"name": "Dr. Mary Lowe", "email": "lowe@university.edu", "max_subjects": 3},
    {"name": "Prof. John Garner", "email": "garner@university.edu", "max_subjects": 2},
    {"name": "Dr. Ann Martin", "email": "martin@university.edu", "max_subjects": 3},
    {"name": "Dr. Patricia Hale", "email": "hale@university.edu", "max_subjects": 2},
    {"name": "Prof. Robert Moore", "email": "moore@university.edu", "max_subjects": 2},
    {"name": "Dr. Laura Fenwick", "email": "fenwick@university.edu", "max_subjects": 2},
    {"name": "Prof. Charles Castle", "email": "castle@university.edu", "max_subjects": 2},
    {"name": "Dr. Sophie Silver", "email": "silver@university.edu", "max_subjects": 2},
    {"name": "Prof. David Vance", "email": "vance@university.edu", "max_subjects": 2},
]

# ``professor`` indexes into DEMO_PROFESSORS
DEMO_SUBJECTS: List[Dict[str, Any]] = [
    {
        "name": "Calculus I",
        "schedule": "Mon-Wed-Fri 8:00-10:00",
        "capacity": 30,
        "description": "Introduction to differential and integral calculus",
        "professor": 0,
    },
    {
        "name": "General Physics",
        "schedule": "Tue-Thu 10:00-12:00",
        "capacity": 25,
        "description": "Fundamentals of mechanics and thermodynamics",
        "professor": 1,
    },
    {
        "name": "Organic Chemistry",
        "schedule": "Mon-Wed 14:00-17:00",
        "capacity": 20,
        "description": "Organic compounds and their reactions",
        "professor": 2,
    },
    {
        "name": "Programming I",
        "schedule": "Tue-Thu 8:00-10:00",
        "capacity": 35,
        "description": "Programming fundamentals with Python",
        "professor": 3,
    },
    {
        "name": "Statistics",
        "schedule": "Fri 9:00-12:00",
        "capacity": 40,
        "description": "Descriptive and inferential statistics",
        "professor": 4,
    },
    {
        "name": "Art History",
        "schedule": "Wed 16:00-18:00",
        "capacity": 50,
        "description": "A tour of the major artistic movements",
        "professor": 5,
    },
    {
        "name": "Microbiology",
        "schedule": "Mon-Tue-Wed 10:00-12:00",
        "capacity": 15,
        "description": "Microorganisms and their impact",
        "professor": 6,
    },
    {
        "name": "Social Psychology",
        "schedule": "Thu-Fri 14:00-16:00",
        "capacity": 30,
        "description": "Human behaviour in groups",
        "professor": 7,
    },
    {
        "name": "International Economics",
        "schedule": "Tue-Wed-Thu 16:00-17:30",
        "capacity": 25,
        "description": "Principles of international trade and finance",
        "professor": 8,
    },
    {
        "name": "Graphic Design",
        "schedule": "Mon-Fri 18:00-20:00",
        "capacity": 20,
        "description": "Visual design and communication",
        "professor": 9,
    },
]

DEMO_STUDENTS: List[Dict[str, Any]] = [
    {"name": "Ann Gardner", "email": "ann.gardner@student.edu", "semester": 3},
    {"name": "Charles Lopez", "email": "charles.lopez@student.edu", "semester": 2},
    {"name": "Maria Rhodes", "email": "maria.rhodes@student.edu", "semester": 4},
    {"name": "John Perry", "email": "john.perry@student.edu", "semester": 1},
    {"name": "Laura Towers", "email": "laura.towers@student.edu", "semester": 3},
    {"name": "Robert Silva", "email": "robert.silva@student.edu", "semester": 2},
    {"name": "Patricia Moran", "email": "patricia.moran@student.edu", "semester": 4},
    {"name": "Diego Harper", "email": "diego.harper@student.edu", "semester": 1},
]


@dataclass
class SeedReport:
    professors: int = 0
    subjects: int = 0
    students: int = 0


async def seed_demo_data(gateway: RemoteGateway) -> SeedReport:
    """Create the demo catalogue through the gateway.

    Raises:
        DuplicateRecordError: If demo records already exist.
    """
    report = SeedReport()

    professor_ids = []
    for data in DEMO_PROFESSORS:
        professor = await gateway.professors.create(**data)
        professor_ids.append(professor.id)
        report.professors += 1
    logger.info("Seeded professors", extra={"count": report.professors})

    for data in DEMO_SUBJECTS:
        fields = {key: value for key, value in data.items() if key != "professor"}
        await gateway.subjects.create(
            professor_id=professor_ids[data["professor"]], credits=3, **fields
        )
        report.subjects += 1
    logger.info("Seeded subjects", extra={"count": report.subjects})

    for data in DEMO_STUDENTS:
        await gateway.students.create(**data)
        report.students += 1
    logger.info("Seeded students", extra={"count": report.students})

    return report


async def clear_all(gateway: RemoteGateway) -> SeedReport:
    """Delete every subject, professor and student.

    Subjects go first: their enrollments go with them and professors can
    only be deleted once they own nothing.
    """
    report = SeedReport()
    for subject in await gateway.subjects.get_all():
        await gateway.subjects.delete(subject.id)
        report.subjects += 1
    for professor in await gateway.professors.get_all():
        await gateway.professors.delete(professor.id)
        report.professors += 1
    for student in await gateway.students.get_all():
        await gateway.students.delete(student.id)
        report.students += 1
    logger.info(
        "Cleared all data",
        extra={
            "subjects": report.subjects,
            "professors": report.professors,
            "students": report.students,
        },
    )
    return report


async def _main(clear: bool) -> None:
    from academia.config import get_settings
    from academia.enrollment.rules import EnrollmentLimits
    from academia.utils.db import close_db, db_manager, init_db

    await init_db()
    try:
        gateway = RemoteGateway(
            db_manager.session_factory,
            limits=EnrollmentLimits.from_settings(get_settings()),
        )
        if clear:
            await clear_all(gateway)
        await seed_demo_data(gateway)
    finally:
        await close_db()


if __name__ == "__main__":
    from academia.utils.logging import setup_logging

    parser = argparse.ArgumentParser(description="Seed the demo catalogue")
    parser.add_argument("--clear", action="store_true", help="delete all data first")
    args = parser.parse_args()

    setup_logging()
    asyncio.run(_main(args.clear))
