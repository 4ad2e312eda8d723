"""
Drawing Store
Durable record of drawing epochs, entries, winners and identity mappings.
Every mutating call is a single transaction.
"""

import logging
import time
import uuid
from functools import wraps

from sqlalchemy import bindparam, text
from sqlalchemy.exc import SQLAlchemyError

from .exceptions import PersistenceError

logger = logging.getLogger(__name__)


def _persistence_errors(func):
    """Re-raise database failures as PersistenceError so callers see a transient error"""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except SQLAlchemyError as e:
            logger.error(f"Database error in {func.__name__}: {e}", exc_info=True)
            raise PersistenceError(f"{func.__name__} failed: {e}") from e
    return wrapper


class DrawingStore:
    """CRUD over the users, drawings, entries and winners tables"""

    def __init__(self, engine):
        self.engine = engine

    # ========================================
    # DRAWINGS
    # ========================================

    @_persistence_errors
    def load_latest_drawing(self, channel):
        """
        Get the most recent epoch for a channel

        Returns:
            dict: Drawing row or None if the channel never had one
        """
        with self.engine.connect() as conn:
            row = conn.execute(text("""
                SELECT epoch_id, channel, generation, is_open, last_closed_time
                FROM drawings
                WHERE channel = :channel
                ORDER BY generation DESC
                LIMIT 1
            """), {'channel': channel}).fetchone()

        if not row:
            return None
        return {
            'epoch_id': row[0],
            'channel': row[1],
            'generation': row[2],
            'open': bool(row[3]),
            'last_closed_time': row[4],
        }

    @_persistence_errors
    def create_epoch(self, channel, is_open=True, opened_by=None):
        """
        Start a new epoch for a channel, superseding the previous one

        Args:
            channel: Chat channel
            is_open: False only for the placeholder epoch created at first startup
            opened_by: Identity that opened the drawing

        Returns:
            dict: The new drawing row
        """
        epoch_id = uuid.uuid4().hex

        with self.engine.begin() as conn:
            generation = conn.execute(text("""
                SELECT COALESCE(MAX(generation), 0) FROM drawings WHERE channel = :channel
            """), {'channel': channel}).scalar() + 1

            conn.execute(text("""
                INSERT INTO drawings (epoch_id, channel, generation, is_open, opened_by)
                VALUES (:epoch_id, :channel, :generation, :is_open, :opened_by)
            """), {
                'epoch_id': epoch_id,
                'channel': channel,
                'generation': generation,
                'is_open': is_open,
                'opened_by': opened_by,
            })

        logger.info(f"Created epoch {epoch_id} (#{generation}) for channel {channel}")
        return {
            'epoch_id': epoch_id,
            'channel': channel,
            'generation': generation,
            'open': is_open,
            'last_closed_time': None,
        }

    # ========================================
    # ENTRIES
    # ========================================

    @_persistence_errors
    def load_entries(self, epoch_id):
        """Get the entry pool for an epoch in insertion order"""
        with self.engine.connect() as conn:
            result = conn.execute(text("""
                SELECT chat_identity FROM entries
                WHERE epoch_id = :epoch_id
                ORDER BY seq
            """), {'epoch_id': epoch_id})
            return [row[0] for row in result]

    @_persistence_errors
    def add_entries(self, epoch_id, identity, copies):
        """
        Add `copies` entry rows for one identity, all or nothing

        Returns:
            int: Number of rows written
        """
        with self.engine.begin() as conn:
            next_seq = conn.execute(text("""
                SELECT COALESCE(MAX(seq), 0) FROM entries WHERE epoch_id = :epoch_id
            """), {'epoch_id': epoch_id}).scalar() + 1

            conn.execute(text("""
                INSERT INTO entries (epoch_id, chat_identity, seq)
                VALUES (:epoch_id, :identity, :seq)
            """), [
                {'epoch_id': epoch_id, 'identity': identity, 'seq': next_seq + i}
                for i in range(copies)
            ])
        return copies

    @_persistence_errors
    def remove_entries(self, epoch_id, identity):
        """
        Remove every entry row an identity has in an epoch

        Returns:
            int: Number of rows removed
        """
        with self.engine.begin() as conn:
            return conn.execute(text("""
                DELETE FROM entries
                WHERE epoch_id = :epoch_id AND chat_identity = :identity
            """), {'epoch_id': epoch_id, 'identity': identity}).rowcount

    # ========================================
    # WINNERS
    # ========================================

    @_persistence_errors
    def commit_close(self, epoch_id, channel, winners):
        """
        Close an epoch: mark it closed, retire the winners' entries and record them

        Args:
            epoch_id: Epoch being closed
            channel: Chat channel
            winners: Ordered list of winning identities (may be empty)
        """
        now = int(time.time())

        with self.engine.begin() as conn:
            conn.execute(text("""
                UPDATE drawings
                SET is_open = :is_open, last_closed_time = :now
                WHERE epoch_id = :epoch_id
            """), {'is_open': False, 'now': now, 'epoch_id': epoch_id})

            if winners:
                conn.execute(
                    text("""
                        DELETE FROM entries
                        WHERE epoch_id = :epoch_id AND chat_identity IN :identities
                    """).bindparams(bindparam('identities', expanding=True)),
                    {'epoch_id': epoch_id, 'identities': list(winners)},
                )

                conn.execute(text("""
                    INSERT INTO winners (epoch_id, channel, chat_identity, picked_at, seq)
                    VALUES (:epoch_id, :channel, :identity, :picked_at, :seq)
                """), [
                    {
                        'epoch_id': epoch_id,
                        'channel': channel,
                        'identity': identity,
                        'picked_at': now,
                        'seq': i + 1,
                    }
                    for i, identity in enumerate(winners)
                ])

    @_persistence_errors
    def commit_reroll(self, epoch_id, channel, retracted, replacement):
        """
        Swap one winner for a replacement drawn from the residual pool

        Args:
            epoch_id: Epoch the winners belong to
            channel: Chat channel
            retracted: Identity losing its win
            replacement: Newly drawn identity
        """
        now = int(time.time())

        with self.engine.begin() as conn:
            # The replacement takes over the retracted winner's slot
            seq = conn.execute(text("""
                SELECT seq FROM winners
                WHERE epoch_id = :epoch_id AND chat_identity = :identity
            """), {'epoch_id': epoch_id, 'identity': retracted}).scalar()

            conn.execute(text("""
                DELETE FROM winners
                WHERE epoch_id = :epoch_id AND chat_identity = :identity
            """), {'epoch_id': epoch_id, 'identity': retracted})

            conn.execute(text("""
                DELETE FROM entries
                WHERE epoch_id = :epoch_id AND chat_identity = :identity
            """), {'epoch_id': epoch_id, 'identity': replacement})

            if seq is None:
                seq = conn.execute(text("""
                    SELECT COALESCE(MAX(seq), 0) FROM winners WHERE epoch_id = :epoch_id
                """), {'epoch_id': epoch_id}).scalar() + 1

            conn.execute(text("""
                INSERT INTO winners (epoch_id, channel, chat_identity, picked_at, seq)
                VALUES (:epoch_id, :channel, :identity, :picked_at, :seq)
            """), {
                'epoch_id': epoch_id,
                'channel': channel,
                'identity': replacement,
                'picked_at': now,
                'seq': seq,
            })

    @_persistence_errors
    def load_winners(self, epoch_id):
        """Get the committed winners of an epoch in pick order"""
        with self.engine.connect() as conn:
            result = conn.execute(text("""
                SELECT chat_identity FROM winners
                WHERE epoch_id = :epoch_id
                ORDER BY seq
            """), {'epoch_id': epoch_id})
            return [row[0] for row in result]

    @_persistence_errors
    def load_last_closed_winners(self, channel):
        """
        Get the winners of the channel's most recently closed epoch

        While a new drawing is open the previous winners keep their room access,
        so this is what the room allow-list is built from at startup.
        """
        with self.engine.connect() as conn:
            row = conn.execute(text("""
                SELECT epoch_id FROM drawings
                WHERE channel = :channel AND last_closed_time IS NOT NULL
                ORDER BY generation DESC
                LIMIT 1
            """), {'channel': channel}).fetchone()

        if not row:
            return []
        return self.load_winners(row[0])

    # ========================================
    # IDENTITY MAPPINGS
    # ========================================

    @_persistence_errors
    def get_external_identity(self, chat_identity):
        """Get the stored external identity for a chat identity, or None"""
        with self.engine.connect() as conn:
            return conn.execute(text("""
                SELECT external_identity FROM users WHERE chat_identity = :identity
            """), {'identity': chat_identity}).scalar()

    @_persistence_errors
    def get_external_identities(self, chat_identities):
        """
        Bulk version of get_external_identity

        Returns:
            dict: chat identity -> external identity (unmapped identities are absent)
        """
        if not chat_identities:
            return {}

        with self.engine.connect() as conn:
            result = conn.execute(
                text("""
                    SELECT chat_identity, external_identity FROM users
                    WHERE chat_identity IN :identities
                """).bindparams(bindparam('identities', expanding=True)),
                {'identities': list(chat_identities)},
            )
            return {row[0]: row[1] for row in result}

    @_persistence_errors
    def upsert_identity(self, chat_identity, external_identity, profile_link=None):
        """
        Insert or update a chat identity's external identity

        Returns:
            bool: True if the mapping was created or changed
        """
        now = int(time.time())

        with self.engine.begin() as conn:
            existing = conn.execute(text("""
                SELECT external_identity FROM users WHERE chat_identity = :identity
            """), {'identity': chat_identity}).fetchone()

            if existing is None:
                conn.execute(text("""
                    INSERT INTO users (chat_identity, external_identity, profile_link, updated_at)
                    VALUES (:identity, :external, :link, :now)
                """), {'identity': chat_identity, 'external': external_identity, 'link': profile_link, 'now': now})
                logger.info(f"Linked {chat_identity} -> {external_identity}")
                return True

            if existing[0] == external_identity:
                return False

            conn.execute(text("""
                UPDATE users
                SET external_identity = :external, profile_link = :link, updated_at = :now
                WHERE chat_identity = :identity
            """), {'identity': chat_identity, 'external': external_identity, 'link': profile_link, 'now': now})
            logger.info(f"Relinked {chat_identity}: {existing[0]} -> {external_identity}")
            return True
