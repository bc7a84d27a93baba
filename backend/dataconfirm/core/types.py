"""Column types shared by the models"""
from sqlalchemy import TypeDecorator, String
import uuid


def generate_uuid() -> str:
    """New submission / user identifier (canonical lowercase UUID4 string)"""
    return str(uuid.uuid4())


def canonical_uuid(value) -> str:
    """Lowercase hyphenated form of a UUID; unparseable values are kept as text"""
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        return str(value)


class GUID(TypeDecorator):
    """
    UUID stored as VARCHAR(36).

    Bound values are canonicalised so a submission looked up with an
    upper-case or brace-wrapped id still matches its row.
    """
    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return canonical_uuid(value)

    def process_result_value(self, value, dialect):
        return None if value is None else str(value)
