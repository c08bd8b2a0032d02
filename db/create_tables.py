import argparse
from typing import Optional

from sqlalchemy.engine import Engine

# Support running as a module (python -m db.create_tables) and as a script
try:
    from .database import Base, get_engine
    # Import models so their metadata is registered with Base
    from . import models  # noqa: F401
except ImportError:
    import sys
    from pathlib import Path

    # Add project root to sys.path so `db` package is importable
    ROOT = Path(__file__).resolve().parents[1]
    if str(ROOT) not in sys.path:
        sys.path.insert(0, str(ROOT))
    from db.database import Base, get_engine  # type: ignore
    from db import models  # type: ignore  # noqa: F401


def create_all_for_engine(engine: Engine) -> None:
    # Game logs, season profiles and injury reports
    Base.metadata.create_all(bind=engine)


def create_all(database_url: Optional[str] = None) -> None:
    create_all_for_engine(get_engine(database_url))


def main() -> None:
    parser = argparse.ArgumentParser(description="Create database tables")
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL. If omitted, uses DATABASE_URL env var.",
    )
    args = parser.parse_args()

    create_all(args.database_url)
    print("Tables created (no-op for existing tables)")


if __name__ == "__main__":
    main()
