"""
Database migration script
Creates the catalog, attempt and entitlement tables
"""

from dotenv import load_dotenv
load_dotenv()

from database.database import engine, Base
from database.models import (  # noqa: F401
    Question, ExamDefinition,
    Attempt, AttemptAnswer,
    UserEntitlement,
)


def create_tables():
    """Create all tables in the database"""
    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    print("Tables created successfully!")
    print("\nCreated tables:")
    print("  - questions, exam_definitions")
    print("  - attempts, attempt_answers")
    print("  - user_entitlements")


if __name__ == "__main__":
    create_tables()
