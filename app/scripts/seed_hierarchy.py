"""Seed the database with a campus → college → program hierarchy.

Usage:
    source .venv/bin/activate
    python -m app.scripts.seed_hierarchy
"""

import asyncio

from sqlalchemy import select

from app.core.database import async_session, init_models
from app.models.campus import Campus
from app.models.college import College
from app.models.program import Program

HIERARCHY = {
    ("main", "Main Campus"): {
        ("ceit", "College of Engineering and Information Technology"): [
            ("bscs", "BS Computer Science"),
            ("bsit", "BS Information Technology"),
            ("bsce", "BS Civil Engineering"),
        ],
        ("cas", "College of Arts and Sciences"): [
            ("bsbio", "BS Biology"),
            ("bapsych", "BA Psychology"),
        ],
    },
    ("silang", "Silang Campus"): {
        ("cs", "Department of Computer Studies"): [
            ("bsit", "BS Information Technology"),
        ],
    },
}


async def seed():
    await init_models()

    async with async_session() as session:
        existing = await session.execute(select(Campus).limit(1))
        if existing.scalar_one_or_none():
            print("Hierarchy already seeded, nothing to do.")
            return

        programs = 0
        for (campus_slug, campus_name), colleges in HIERARCHY.items():
            campus = Campus(slug=campus_slug, name=campus_name)
            session.add(campus)
            await session.flush()

            for (college_slug, college_name), program_rows in colleges.items():
                college = College(campus_id=campus.id, slug=college_slug, name=college_name)
                session.add(college)
                await session.flush()

                for program_slug, program_name in program_rows:
                    session.add(Program(college_id=college.id, slug=program_slug, name=program_name))
                    programs += 1

        await session.commit()
        print(f"Seeded {len(HIERARCHY)} campuses and {programs} programs.")


if __name__ == "__main__":
    asyncio.run(seed())
