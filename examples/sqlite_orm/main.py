"""SQLAlchemy ORM + structquery example.

Run with ``STRUCTQUERY_DEBUG=1`` to see every query, ``STRUCTQUERY_DEBUG=0``
to silence the hook entirely.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import Column, Integer, String, create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import declarative_base, sessionmaker
from structlog.contextvars import bound_contextvars

from structquery import configure_structlog, from_env, with_log_slow
from structquery.integrations.sqlalchemy import setup_query_logging

configure_structlog(service="sqlite-orm", level="DEBUG", json_logs=False)

Base: Any = declarative_base()


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    name = Column(String)


engine = create_engine("sqlite:///:memory:")
setup_query_logging(engine, from_env(), with_log_slow(10))
Base.metadata.create_all(engine)
SessionLocal = sessionmaker(bind=engine)


def main() -> None:
    with bound_contextvars(request_id="req-42"), SessionLocal() as session:
        session.add(User(name="alice"))
        session.commit()

        # Logged at DEBUG, carrying request_id.
        session.query(User).filter_by(name="alice").one()

        # Logged at WARN once it crosses the 10 ms threshold.
        session.execute(
            text(
                "WITH RECURSIVE c(x) AS (SELECT 1 UNION ALL SELECT x + 1 FROM c LIMIT 200000) "
                "SELECT count(*) FROM c"
            )
        )

        # Logged at ERROR with a structured ``error`` attribute.
        try:
            session.execute(text("SELECT * FROM missing_table"))
        except OperationalError:
            session.rollback()


if __name__ == "__main__":
    main()
