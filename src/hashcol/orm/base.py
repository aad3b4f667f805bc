"""Declarative base for models that declare computed-hash columns.

Uses SQLAlchemy 2.0 ``DeclarativeBase`` with :class:`ComputedHashMixin`
first in the bases, so :func:`~hashcol.orm.columns.computed_hash` markers are
turned into real columns before the mapper scans the class.

Projects with their own declarative base can mix the same class in::

    class Base(ComputedHashMixin, DeclarativeBase):
        pass
"""

from __future__ import annotations

from sqlalchemy import LargeBinary, Text
from sqlalchemy.orm import DeclarativeBase

from hashcol.orm.columns import ComputedHashMixin


class HashColBase(ComputedHashMixin, DeclarativeBase):
    """Shared declarative base.

    ``type_annotation_map`` keeps plain ``Mapped[bytes]`` / ``Mapped[str]``
    columns portable:

    * ``bytes`` → ``LargeBinary``  (rendered ``VARBINARY(max)`` on SQL Server)
    * ``str``   → ``Text``
    """

    type_annotation_map = {
        bytes: LargeBinary,
        str: Text,
    }
