"""
Database operations for the CTF portal.
"""

import json
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Tuple, Dict, Any, Optional, AsyncIterator

import aiosqlite

from .errors import (
    AlreadyInTeam,
    DuplicateRegistration,
    NotFound,
    TeamFull,
    TeamNameTaken,
)
from .phase import EventSettings, format_timestamp

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS profiles (
        id TEXT PRIMARY KEY,
        email TEXT NOT NULL UNIQUE COLLATE NOCASE,
        password_hash TEXT NOT NULL,
        full_name TEXT NOT NULL,
        national_id TEXT NOT NULL UNIQUE,
        student_id TEXT NOT NULL UNIQUE,
        department TEXT NOT NULL,
        career TEXT NOT NULL,
        phone_number TEXT,
        is_admin INTEGER NOT NULL DEFAULT 0,
        api_token TEXT UNIQUE,
        privacy_accepted_at TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS teams (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL UNIQUE,
        creator_id TEXT NOT NULL REFERENCES profiles(id),
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS team_members (
        user_id TEXT PRIMARY KEY REFERENCES profiles(id) ON DELETE CASCADE,
        team_id TEXT NOT NULL REFERENCES teams(id) ON DELETE CASCADE,
        joined_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS challenges (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        category TEXT NOT NULL,
        difficulty INTEGER NOT NULL,
        points INTEGER NOT NULL,
        flag TEXT NOT NULL,
        hints TEXT NOT NULL DEFAULT '[]',
        is_visible INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS submissions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
        team_id TEXT NOT NULL REFERENCES teams(id) ON DELETE CASCADE,
        challenge_id TEXT NOT NULL REFERENCES challenges(id) ON DELETE CASCADE,
        submitted_flag TEXT NOT NULL,
        is_correct INTEGER NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS event_settings (
        id INTEGER PRIMARY KEY CHECK (id = 1),
        registration_end_time TEXT,
        event_start_time TEXT,
        event_end_time TEXT
    )
    """,
    """
    CREATE VIEW IF NOT EXISTS scoreboard AS
    SELECT
        t.id AS team_id,
        t.name AS team_name,
        COALESCE(SUM(c.points), 0) AS score,
        MAX(s.solved_at) AS last_submission
    FROM teams t
    LEFT JOIN (
        SELECT team_id, challenge_id, MIN(created_at) AS solved_at
        FROM submissions
        WHERE is_correct = 1
        GROUP BY team_id, challenge_id
    ) s ON s.team_id = t.id
    LEFT JOIN challenges c ON c.id = s.challenge_id
    GROUP BY t.id, t.name
    """,
    "CREATE INDEX IF NOT EXISTS idx_team_members_team ON team_members(team_id)",
    """
    CREATE INDEX IF NOT EXISTS idx_submissions_team_challenge
    ON submissions(team_id, challenge_id, is_correct)
    """,
    "CREATE INDEX IF NOT EXISTS idx_challenges_visible ON challenges(is_visible)",
    "INSERT OR IGNORE INTO event_settings (id) VALUES (1)",
]

SCOREBOARD_ORDER = "score DESC, last_submission IS NULL, last_submission ASC, team_name ASC"

# UNIQUE constraint name -> registration form field
_PROFILE_UNIQUE_FIELDS = {
    "profiles.email": ("email", "This institutional email is already registered."),
    "profiles.national_id": ("national_id", "This national ID is already registered."),
    "profiles.student_id": ("student_id_digits", "This student ID is already registered."),
}


def utc_now_iso(now: Optional[datetime] = None) -> str:
    """Fixed-width UTC timestamp so that stored values sort lexicographically."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def new_id() -> str:
    return uuid.uuid4().hex


class DatabaseManager:
    """Manages database operations with caching of the public scoreboard."""

    def __init__(
        self,
        db_path: str,
        config: Any,
    ) -> None:
        self.db_path = db_path
        self.config = config
        # Simple in-memory cache with TTL
        self._cache: Dict[str, Tuple[Any, float]] = {}
        self._cache_ttl = config.get("ui", "scoreboard_cache_seconds") or 0

    def _get_cache_key(self, *args: Any) -> str:
        """
        Generate a cache key from arguments.

        @param args: Variable arguments to create cache key from
        @return: String cache key generated from arguments
        """
        return ":".join(str(arg) for arg in args)

    def _get_from_cache(
        self,
        cache_key: str,
    ) -> Optional[Any]:
        """
        Get value from cache if valid.

        @param cache_key: String cache key to lookup
        @return: Cached data if valid, None if expired or not found
        """
        if cache_key in self._cache:
            data, timestamp = self._cache[cache_key]

            if time.time() - timestamp < self._cache_ttl:
                return data
            else:
                del self._cache[cache_key]
        return None

    def _set_cache(
        self,
        cache_key: str,
        data: Any,
    ) -> None:
        if self._cache_ttl > 0:
            self._cache[cache_key] = (data, time.time())

    def _invalidate_cache(
        self,
        pattern: Optional[str] = None,
    ) -> None:
        """
        Invalidate cache entries matching pattern or all if None.

        @param pattern: Optional string pattern to match cache keys against
        """
        if pattern is None:
            self._cache.clear()
        else:
            keys_to_remove = [k for k in self._cache if pattern in k]
            for key in keys_to_remove:
                del self._cache[key]

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            await db.execute("PRAGMA foreign_keys=ON")
            yield db

    async def init_db(self) -> None:
        """
        Initialize the SQLite database with schema, view and indexes.
        """
        async with self._connect() as db:
            # Enable WAL mode for better concurrent access
            await db.execute("PRAGMA journal_mode=WAL")
            await db.execute("PRAGMA synchronous=NORMAL")

            for statement in SCHEMA:
                await db.execute(statement)

            await db.commit()

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    async def create_profile(
        self,
        email: str,
        password_hash: str,
        full_name: str,
        national_id: str,
        student_id: str,
        department: str,
        career: str,
        phone_number: str = "",
        api_token: Optional[str] = None,
        privacy_accepted_at: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a participant profile.

        @raise DuplicateRegistration: if email, national ID or student ID is taken
        @return: The stored profile
        """
        profile_id = new_id()

        async with self._connect() as db:
            try:
                await db.execute(
                    "INSERT INTO profiles (id, email, password_hash, full_name, national_id, "
                    "student_id, department, career, phone_number, api_token, privacy_accepted_at, "
                    "created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        profile_id,
                        email.strip().lower(),
                        password_hash,
                        full_name.strip(),
                        national_id,
                        student_id,
                        department,
                        career,
                        phone_number,
                        api_token,
                        privacy_accepted_at,
                        utc_now_iso(),
                    ),
                )
                await db.commit()
            except aiosqlite.IntegrityError as e:
                for constraint, (field, message) in _PROFILE_UNIQUE_FIELDS.items():
                    if constraint in str(e):
                        raise DuplicateRegistration(message, field) from e
                raise DuplicateRegistration("This value is already registered.") from e

        return await self.get_profile(profile_id)

    async def get_profile(self, profile_id: str) -> Optional[Dict[str, Any]]:
        async with self._connect() as db:
            cursor = await db.execute("SELECT * FROM profiles WHERE id = ?", (profile_id,))
            row = await cursor.fetchone()
            return _profile_dict(row)

    async def get_profile_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT * FROM profiles WHERE email = ?", (email.strip().lower(),)
            )
            row = await cursor.fetchone()
            return _profile_dict(row)

    async def get_profile_by_token(self, token: str) -> Optional[Dict[str, Any]]:
        if not token:
            return None
        async with self._connect() as db:
            cursor = await db.execute("SELECT * FROM profiles WHERE api_token = ?", (token,))
            row = await cursor.fetchone()
            return _profile_dict(row)

    async def set_token(self, profile_id: str, token: str) -> None:
        async with self._connect() as db:
            await db.execute(
                "UPDATE profiles SET api_token = ? WHERE id = ?", (token, profile_id)
            )
            await db.commit()

    async def set_admin(self, email: str, is_admin: bool = True) -> bool:
        """
        Grant or revoke administrator rights.

        @return: True if a profile with that email exists
        """
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE profiles SET is_admin = ? WHERE email = ?",
                (int(is_admin), email.strip().lower()),
            )
            await db.commit()
            return cursor.rowcount > 0

    async def list_profiles_with_teams(
        self,
        team_filter: str = "all",
        search: str = "",
    ) -> List[Dict[str, Any]]:
        """
        List participants together with their team, for the admin console.

        @param team_filter: "all", "with-team" or "without-team"
        @param search: Case-insensitive substring of name or student ID
        @return: List of user dictionaries ordered by name
        """
        query = """
            SELECT p.id, p.full_name, p.student_id, p.department, p.career,
                   p.email, p.is_admin, tm.team_id, t.name AS team_name
            FROM profiles p
            LEFT JOIN team_members tm ON tm.user_id = p.id
            LEFT JOIN teams t ON t.id = tm.team_id
            WHERE 1 = 1
        """
        params: List[Any] = []

        if team_filter == "with-team":
            query += " AND tm.team_id IS NOT NULL"
        elif team_filter == "without-team":
            query += " AND tm.team_id IS NULL"

        if search:
            query += " AND (LOWER(p.full_name) LIKE ? OR LOWER(p.student_id) LIKE ?)"
            pattern = f"%{search.lower()}%"
            params.extend([pattern, pattern])

        query += " ORDER BY p.full_name"

        async with self._connect() as db:
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()

        users = []
        for row in rows:
            user = dict(row)
            user["is_admin"] = bool(user["is_admin"])
            users.append(user)
        return users

    # ------------------------------------------------------------------
    # Teams
    # ------------------------------------------------------------------

    async def create_team(
        self,
        name: str,
        creator_id: str,
        add_creator: bool = True,
    ) -> Dict[str, Any]:
        """
        Create a team, optionally enrolling its creator as first member.

        @param name: Unique team name
        @param creator_id: Profile ID of the creator
        @param add_creator: Whether the creator joins the team
        @raise TeamNameTaken: if the name already exists
        @raise AlreadyInTeam: if the creator already belongs to a team
        @return: The new team
        """
        team_id = new_id()
        now = utc_now_iso()

        async with self._connect() as db:
            await db.execute("BEGIN IMMEDIATE")

            if add_creator and await self._membership(db, creator_id):
                await db.rollback()
                raise AlreadyInTeam("You already belong to a team.")

            try:
                await db.execute(
                    "INSERT INTO teams (id, name, creator_id, created_at) VALUES (?, ?, ?, ?)",
                    (team_id, name, creator_id, now),
                )
            except aiosqlite.IntegrityError as e:
                await db.rollback()
                raise TeamNameTaken("A team with this name already exists.") from e

            if add_creator:
                await db.execute(
                    "INSERT INTO team_members (user_id, team_id, joined_at) VALUES (?, ?, ?)",
                    (creator_id, team_id, now),
                )

            await db.commit()

        self._invalidate_cache("scoreboard")
        return {"id": team_id, "name": name, "creator_id": creator_id, "created_at": now}

    async def _membership(
        self,
        db: aiosqlite.Connection,
        user_id: str,
    ) -> Optional[str]:
        cursor = await db.execute(
            "SELECT team_id FROM team_members WHERE user_id = ?", (user_id,)
        )
        row = await cursor.fetchone()
        return row["team_id"] if row else None

    async def _add_member(
        self,
        db: aiosqlite.Connection,
        team_id: str,
        user_id: str,
    ) -> None:
        """
        Insert a membership inside an open transaction, enforcing capacity.
        """
        cursor = await db.execute("SELECT id FROM teams WHERE id = ?", (team_id,))
        if await cursor.fetchone() is None:
            raise NotFound("Team not found.")

        cursor = await db.execute(
            "SELECT COUNT(*) FROM team_members WHERE team_id = ?", (team_id,)
        )
        (count,) = await cursor.fetchone()
        max_members = self.config.get("teams", "max_members")

        if count >= max_members:
            raise TeamFull(f"The team is full (maximum {max_members} members).")

        await db.execute(
            "INSERT INTO team_members (user_id, team_id, joined_at) VALUES (?, ?, ?)",
            (user_id, team_id, utc_now_iso()),
        )

    async def join_team(self, team_id: str, user_id: str) -> None:
        """
        Add a user to a team.

        @raise AlreadyInTeam: if the user already has a team
        @raise TeamFull: if the team reached its capacity
        @raise NotFound: if the team does not exist
        """
        async with self._connect() as db:
            await db.execute("BEGIN IMMEDIATE")
            try:
                if await self._membership(db, user_id):
                    raise AlreadyInTeam("You already belong to a team.")
                await self._add_member(db, team_id, user_id)
            except Exception:
                await db.rollback()
                raise
            await db.commit()

    async def leave_team(self, team_id: str, user_id: str) -> bool:
        """
        Remove a user from a team.

        @return: True if a membership was removed
        """
        async with self._connect() as db:
            cursor = await db.execute(
                "DELETE FROM team_members WHERE user_id = ? AND team_id = ?",
                (user_id, team_id),
            )
            await db.commit()
            return cursor.rowcount > 0

    async def remove_member(self, team_id: str, user_id: str) -> None:
        if not await self.leave_team(team_id, user_id):
            raise NotFound("Member not found in this team.")

    async def move_member(self, user_id: str, team_id: str) -> None:
        """
        Move a user into a team, leaving any current team first.

        Used by administrators both to assign team-less users and to move
        members between teams.

        @raise TeamFull: if the destination team is full
        @raise NotFound: if the user or team does not exist
        """
        async with self._connect() as db:
            await db.execute("BEGIN IMMEDIATE")
            try:
                cursor = await db.execute("SELECT id FROM profiles WHERE id = ?", (user_id,))
                if await cursor.fetchone() is None:
                    raise NotFound("User not found.")

                current = await self._membership(db, user_id)
                if current == team_id:
                    await db.rollback()
                    return

                await db.execute("DELETE FROM team_members WHERE user_id = ?", (user_id,))
                await self._add_member(db, team_id, user_id)
            except Exception:
                await db.rollback()
                raise
            await db.commit()

    async def delete_team(self, team_id: str) -> None:
        """
        Delete a team; its members stay registered without a team.

        @raise NotFound: if the team does not exist
        """
        async with self._connect() as db:
            await db.execute("DELETE FROM team_members WHERE team_id = ?", (team_id,))
            cursor = await db.execute("DELETE FROM teams WHERE id = ?", (team_id,))
            await db.commit()
            if cursor.rowcount == 0:
                raise NotFound("Team not found.")

        self._invalidate_cache("scoreboard")

    async def get_team(self, team_id: str) -> Optional[Dict[str, Any]]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id, name, creator_id, created_at FROM teams WHERE id = ?", (team_id,)
            )
            row = await cursor.fetchone()
            return dict(row) if row else None

    async def get_team_for_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        async with self._connect() as db:
            cursor = await db.execute(
                """
                SELECT t.id, t.name, t.creator_id, t.created_at
                FROM team_members tm
                JOIN teams t ON t.id = tm.team_id
                WHERE tm.user_id = ?
                """,
                (user_id,),
            )
            row = await cursor.fetchone()
            return dict(row) if row else None

    async def get_team_members(self, team_id: str) -> List[Dict[str, Any]]:
        async with self._connect() as db:
            cursor = await db.execute(
                """
                SELECT p.id AS user_id, p.full_name, p.student_id, tm.joined_at
                FROM team_members tm
                JOIN profiles p ON p.id = tm.user_id
                WHERE tm.team_id = ?
                ORDER BY tm.joined_at
                """,
                (team_id,),
            )
            return [dict(row) for row in await cursor.fetchall()]

    async def list_teams(self, search: str = "") -> List[Dict[str, Any]]:
        """
        List teams with their member counts, ordered by name.

        @param search: Case-insensitive substring of the team name
        """
        query = """
            SELECT t.id, t.name, t.creator_id, COUNT(tm.user_id) AS member_count
            FROM teams t
            LEFT JOIN team_members tm ON tm.team_id = t.id
        """
        params: List[Any] = []
        if search:
            query += " WHERE LOWER(t.name) LIKE ?"
            params.append(f"%{search.lower()}%")
        query += " GROUP BY t.id, t.name, t.creator_id ORDER BY t.name"

        async with self._connect() as db:
            cursor = await db.execute(query, params)
            return [dict(row) for row in await cursor.fetchall()]

    # ------------------------------------------------------------------
    # Challenges
    # ------------------------------------------------------------------

    async def create_challenge(
        self,
        title: str,
        description: str,
        category: str,
        difficulty: int,
        points: int,
        flag: str,
        hints: List[str],
    ) -> Dict[str, Any]:
        """
        Create a challenge. New challenges start hidden.

        @return: The stored challenge, flag included
        """
        challenge_id = new_id()

        async with self._connect() as db:
            await db.execute(
                "INSERT INTO challenges (id, title, description, category, difficulty, "
                "points, flag, hints, is_visible, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0, ?)",
                (
                    challenge_id,
                    title,
                    description,
                    category,
                    difficulty,
                    points,
                    flag,
                    json.dumps(hints),
                    utc_now_iso(),
                ),
            )
            await db.commit()

        return await self.get_challenge(challenge_id)

    async def get_challenge(self, challenge_id: str) -> Optional[Dict[str, Any]]:
        async with self._connect() as db:
            cursor = await db.execute("SELECT * FROM challenges WHERE id = ?", (challenge_id,))
            row = await cursor.fetchone()
            return _challenge_dict(row)

    async def list_challenges(self) -> List[Dict[str, Any]]:
        """All challenges, newest first (admin view)."""
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT * FROM challenges ORDER BY created_at DESC"
            )
            return [_challenge_dict(row) for row in await cursor.fetchall()]

    async def list_visible_challenges(self) -> List[Dict[str, Any]]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT * FROM challenges WHERE is_visible = 1 ORDER BY category, points, title"
            )
            return [_challenge_dict(row) for row in await cursor.fetchall()]

    async def set_challenge_visibility(self, challenge_id: str, is_visible: bool) -> None:
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE challenges SET is_visible = ? WHERE id = ?",
                (int(is_visible), challenge_id),
            )
            await db.commit()
            if cursor.rowcount == 0:
                raise NotFound("Challenge not found.")

        self._invalidate_cache("scoreboard")

    async def delete_challenge(self, challenge_id: str) -> None:
        async with self._connect() as db:
            cursor = await db.execute("DELETE FROM challenges WHERE id = ?", (challenge_id,))
            await db.commit()
            if cursor.rowcount == 0:
                raise NotFound("Challenge not found.")

        self._invalidate_cache("scoreboard")

    # ------------------------------------------------------------------
    # Submissions and scoreboard
    # ------------------------------------------------------------------

    async def record_submission(
        self,
        user_id: str,
        team_id: str,
        challenge_id: str,
        submitted_flag: str,
        is_correct: bool,
    ) -> None:
        """
        Record a flag attempt, correct or not.
        """
        async with self._connect() as db:
            await db.execute(
                "INSERT INTO submissions (user_id, team_id, challenge_id, submitted_flag, "
                "is_correct, created_at) VALUES (?, ?, ?, ?, ?, ?)",
                (user_id, team_id, challenge_id, submitted_flag, int(is_correct), utc_now_iso()),
            )
            await db.commit()

        if is_correct:
            # Invalidate cache when the scoreboard changes
            self._invalidate_cache("scoreboard")

    async def get_solved_challenge_ids(self, team_id: str) -> List[str]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT DISTINCT challenge_id FROM submissions "
                "WHERE team_id = ? AND is_correct = 1",
                (team_id,),
            )
            return [row["challenge_id"] for row in await cursor.fetchall()]

    async def get_scoreboard(self) -> List[Dict[str, Any]]:
        """
        Get the ranked public scoreboard.

        Ties on score are broken by the earliest last correct submission;
        teams without solves come last.

        @return: List of dictionaries with rank, team, score and last submission
        """
        max_entries = self.config.get("ui", "max_scoreboard_entries")
        cache_key = self._get_cache_key("scoreboard", max_entries)
        cached_data = self._get_from_cache(cache_key)

        if cached_data is not None:
            return cached_data

        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT team_id, team_name, score, last_submission FROM scoreboard "
                f"ORDER BY {SCOREBOARD_ORDER} LIMIT ?",
                (max_entries,),
            )
            rows = await cursor.fetchall()

        result = [
            {
                "rank": rank,
                "team_id": row["team_id"],
                "team_name": row["team_name"],
                "score": row["score"],
                "last_submission": row["last_submission"],
            }
            for rank, row in enumerate(rows, 1)
        ]

        self._set_cache(cache_key, result)
        return result

    async def get_team_rank(self, team_id: str) -> Optional[int]:
        """
        Position of a team on the full scoreboard, 1-based.

        @return: Rank, or None if the team is unknown
        """
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT team_id FROM scoreboard ORDER BY {SCOREBOARD_ORDER}"
            )
            rows = await cursor.fetchall()

        for rank, row in enumerate(rows, 1):
            if row["team_id"] == team_id:
                return rank
        return None

    # ------------------------------------------------------------------
    # Event settings
    # ------------------------------------------------------------------

    async def get_event_settings(self) -> EventSettings:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT registration_end_time, event_start_time, event_end_time "
                "FROM event_settings WHERE id = 1"
            )
            row = await cursor.fetchone()
            return EventSettings.from_mapping(dict(row) if row else None)

    async def update_event_settings(self, settings: EventSettings) -> EventSettings:
        stored = settings.to_dict()

        async with self._connect() as db:
            await db.execute(
                "INSERT INTO event_settings (id, registration_end_time, event_start_time, "
                "event_end_time) VALUES (1, ?, ?, ?) "
                "ON CONFLICT(id) DO UPDATE SET "
                "registration_end_time = excluded.registration_end_time, "
                "event_start_time = excluded.event_start_time, "
                "event_end_time = excluded.event_end_time",
                (
                    stored["registration_end_time"],
                    stored["event_start_time"],
                    stored["event_end_time"],
                ),
            )
            await db.commit()

        return await self.get_event_settings()

    async def print_full_scoreboard(self) -> None:
        """
        Print the complete scoreboard to console.
        """
        print("\n" + "=" * 50)
        print("COMPLETE SCOREBOARD")
        print("=" * 50)

        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT team_name, score, last_submission FROM scoreboard "
                f"ORDER BY {SCOREBOARD_ORDER}"
            )
            all_scores = await cursor.fetchall()

        if not all_scores:
            print("Scoreboard is empty")
            return

        for position, (team_name, score, last_submission) in enumerate(all_scores, 1):
            timestamp_str = last_submission[:19] if last_submission else "---"
            print(f"{position:2d}. {team_name:<20} Score: {score:5d} ({timestamp_str})")


def _profile_dict(row: Optional[aiosqlite.Row]) -> Optional[Dict[str, Any]]:
    if row is None:
        return None
    profile = dict(row)
    profile["is_admin"] = bool(profile["is_admin"])
    return profile


def _challenge_dict(row: Optional[aiosqlite.Row]) -> Optional[Dict[str, Any]]:
    if row is None:
        return None
    challenge = dict(row)
    challenge["is_visible"] = bool(challenge["is_visible"])
    try:
        challenge["hints"] = json.loads(challenge["hints"] or "[]")
    except ValueError:
        challenge["hints"] = []
    return challenge
