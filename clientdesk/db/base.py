from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def one_of(column_name: str, values) -> str:
    """SQL for a CHECK constraint limiting ``column_name`` to ``values``."""
    quoted = ", ".join(f"'{value}'" for value in sorted(values))
    return f"{column_name} IN ({quoted})"
