# backend/models/types.py
from sqlalchemy import String
from sqlalchemy.types import TypeDecorator


# Boolean flag persisted as 'Y'/'N' text; the rest of the code only sees bool
class YesNoBoolean(TypeDecorator):
    impl = String(1)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return "Y" if value else "N"

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value.upper() == "Y"
