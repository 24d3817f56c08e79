from __future__ import annotations

from ..extensions import db


def enum_column(enum_cls, *, length: int = 16, **kwargs):
    """String-backed column restricted to the members of a str Enum."""
    return db.Column(
        db.Enum(
            enum_cls,
            name=f"{enum_cls.__name__.lower()}_enum",
            native_enum=False,
            create_constraint=True,
            length=length,
            values_callable=lambda members: [m.value for m in members],
            validate_strings=True,
        ),
        **kwargs,
    )


def enum_value(value):
    return value.value if hasattr(value, "value") else value
