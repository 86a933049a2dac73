"""
auth/store.py -- SQLAlchemy Core persistence layer for users and roles.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user / _row_to_role are the mappers.
Route, middleware, and CLI code never touches SQL directly.

Schema:
  users       -- one row per account; email is UNIQUE.
  roles       -- one row per role; name (canonical ROLE_* form) is UNIQUE.
  user_roles  -- many-to-many join, composite primary key.

The default role (ROLE_USER) is seeded on construction so registration can
always fall back to it.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, ForeignKey, Integer, MetaData, String, Table, Text, create_engine, event, select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from auth.models import DEFAULT_ROLE, STATUS_ACTIVE, Role, User

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("full_name", String(255), nullable=False),
    Column("cell_number", String(32)),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("status", String(16), nullable=False, server_default=STATUS_ACTIVE),
    Column("created_at", String(32), nullable=False),
)

_roles = Table(
    "roles",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(64), nullable=False, unique=True),
)

_user_roles = Table(
    "user_roles",
    _metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
)


# ---------------------------------------------------------------------------
# SQLite connection setup
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign key enforcement.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User and Role entities.

    Usage:
        store = UserStore("sqlite:///auth/rbac.db")
        store.create_role("ROLE_ADMIN")
        store.create_user(User(full_name="Ada", email="ada@example.com", hashed_password=h), ["ROLE_ADMIN"])
        user = store.get_by_email("ada@example.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        engine_kwargs: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            if ":memory:" in db_url or "mode=memory" in db_url:
                # One connection for every thread, or each would see its own empty DB.
                engine_kwargs["poolclass"] = StaticPool
        self.engine: Engine = create_engine(db_url, connect_args=connect_args, **engine_kwargs)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_sqlite_pragmas)
        _metadata.create_all(self.engine)
        self._ensure_default_role()

    def _ensure_default_role(self) -> None:
        """Seed ROLE_USER if absent. Idempotent -- safe to call on every startup."""
        if self.get_role(DEFAULT_ROLE) is not None:
            return
        try:
            self.create_role(DEFAULT_ROLE)
        except IntegrityError:
            # Another process seeded it between the check and the insert.
            pass

    # ------------------------------------------------------------------
    # Role queries
    # ------------------------------------------------------------------

    def get_role(self, name: str) -> Role | None:
        """Look up a role by canonical name. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_roles.select().where(_roles.c.name == name)).fetchone()
        return _row_to_role(row) if row is not None else None

    def create_role(self, name: str) -> int:
        """Insert a role and return its ID.

        Raises sqlalchemy.exc.IntegrityError if the name already exists.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_roles.insert().values(name=name))
            conn.commit()
            return result.inserted_primary_key[0]

    def list_roles(self) -> list[Role]:
        """Return all roles ordered by name."""
        with self.engine.connect() as conn:
            rows = conn.execute(_roles.select().order_by(_roles.c.name)).fetchall()
        return [_row_to_role(r) for r in rows]

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def create_user(self, user: User, role_names: list[str]) -> int:
        """Insert a user and its role links in one transaction; return the user ID.

        Every name in role_names must already exist -- callers resolve and
        validate roles first. Raises sqlalchemy.exc.IntegrityError if the
        email is already registered; nothing is written in that case.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                _users.insert().values(
                    full_name=user.full_name,
                    cell_number=user.cell_number,
                    email=user.email,
                    hashed_password=user.hashed_password,
                    status=user.status,
                    created_at=_now_iso(),
                )
            )
            user_id = result.inserted_primary_key[0]
            role_ids = conn.execute(select(_roles.c.id).where(_roles.c.name.in_(role_names))).scalars().all()
            if role_ids:
                conn.execute(
                    _user_roles.insert(),
                    [{"user_id": user_id, "role_id": role_id} for role_id in role_ids],
                )
        return user_id

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
            if row is None:
                return None
            return _row_to_user(row, _load_role_names(conn, row.id))

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
            if row is None:
                return None
            return _row_to_user(row, _load_role_names(conn, row.id))

    def list_by_status(self, status: str) -> list[User]:
        """Return users with the given status ordered by email."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().where(_users.c.status == status).order_by(_users.c.email)).fetchall()
            return [_row_to_user(r, _load_role_names(conn, r.id)) for r in rows]

    def update_status(self, email: str, status: str) -> bool:
        """Set a user's status. Returns True if a row was updated, False if email was not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.email == email).values(status=status))
            conn.commit()
        return result.rowcount > 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by the health route."""
        try:
            with self.engine.connect() as conn:
                conn.execute(select(1))
        except SQLAlchemyError:
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _load_role_names(conn: Connection, user_id: int) -> list[str]:
    rows = conn.execute(
        select(_roles.c.name)
        .select_from(_user_roles.join(_roles, _user_roles.c.role_id == _roles.c.id))
        .where(_user_roles.c.user_id == user_id)
        .order_by(_roles.c.name)
    ).scalars()
    return list(rows)


def _row_to_user(row, role_names: list[str]) -> User:
    return User(
        id=row.id,
        full_name=row.full_name,
        cell_number=row.cell_number,
        email=row.email,
        hashed_password=row.hashed_password,
        status=row.status,
        roles=role_names,
        created_at=row.created_at,
    )


def _row_to_role(row) -> Role:
    return Role(id=row.id, name=row.name)
