from app.db.base import Base
from app.db.session import engine
from app.modules.auth.model import User  # noqa: F401  registers the users table


def create_schema(bind=engine):
    print("Creating tables...")
    Base.metadata.create_all(bind=bind)
    print("Success! Tables created:", list(Base.metadata.tables.keys()))


if __name__ == "__main__":
    create_schema()
