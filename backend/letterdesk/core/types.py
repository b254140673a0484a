"""
Column types shared by the LetterDesk models.

Primary and foreign keys are UUIDs stored as 36-character strings so the same
schema runs on PostgreSQL and on the SQLite database used by the tests.
"""
from sqlalchemy import TypeDecorator, String
import uuid


def generate_uuid() -> str:
    """New primary key for users and letters"""
    return str(uuid.uuid4())


class GUID(TypeDecorator):
    """UUID key stored as VARCHAR(36), always in lowercase hyphenated form"""
    impl = String(36)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        return dialect.type_descriptor(String(36))

    def process_bind_param(self, value, dialect):
        # Path parameters arrive as plain strings; ids are compared case-insensitively
        if value is None:
            return value
        return str(value).lower()

    def process_result_value(self, value, dialect):
        if value is not None:
            return str(value)
        return value
