# scripts/verify_test_infra.py
"""Sanity-check a migrated PostgreSQL database before running the suite against it.

Usage:
    TASKMARKET_TEST_DATABASE_URL=postgresql+psycopg://.../taskmarket_test \
        python scripts/verify_test_infra.py
"""
from __future__ import annotations

import sys

from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError

from taskmarket.core.config import settings

REQUIRED_TABLES = {
    "tasks",
    "task_status_history",
    "chat_rooms",
    "chat_members",
    "chat_messages",
    "notifications",
    "notification_preferences",
    "push_subscriptions",
    "profiles",
    "xp_transactions",
    "credit_transactions",
    "reviews",
}

REQUIRED_TASK_CHECKS = {
    "ck_tasks_accepted_by_matches_status",
    "ck_tasks_not_self_accepted",
    "ck_tasks_status_domain",
    "ck_tasks_phase_domain",
}


def die(msg: str) -> None:
    print(f"[verify-test-infra] ERROR: {msg}", file=sys.stderr)
    sys.exit(1)


def main() -> None:
    url = make_url(settings.test_database_url)
    if url.get_backend_name() != "postgresql":
        die(f"test_database_url points at '{url.get_backend_name()}', expected postgresql")

    engine = create_engine(url, future=True)

    with engine.connect() as conn:
        current_db = conn.execute(text("select current_database()")).scalar_one()
        print(f"[ok] connected to {current_db}")

        try:
            version = conn.execute(text("select version_num from alembic_version")).scalar_one()
        except SQLAlchemyError as e:
            die(f"alembic_version table missing: {e}")
        print(f"[ok] alembic_version = {version}")

        present = set(
            conn.execute(
                text("select table_name from information_schema.tables where table_schema = 'public'")
            ).scalars()
        )
        missing = REQUIRED_TABLES - present
        if missing:
            die(f"missing tables: {sorted(missing)}")
        print("[ok] required tables present")

        checks = set(
            conn.execute(
                text(
                    """
                    select conname
                    from pg_constraint
                    where conrelid = 'tasks'::regclass
                      and contype = 'c'
                    """
                )
            ).scalars()
        )
        missing_checks = REQUIRED_TASK_CHECKS - checks
        if missing_checks:
            die(f"tasks missing CHECK constraints: {sorted(missing_checks)}")
        print("[ok] tasks lifecycle constraints present")

    engine.dispose()
    print("[verify-test-infra] ALL CHECKS PASSED")


if __name__ == "__main__":
    main()
