"""
hashcol - database-computed hash columns for SQLAlchemy and Alembic.

- hashcol.core: descriptor engine (algorithms, normalization, rendering, transitions)
- hashcol.orm: declarative and Core front ends
- hashcol.migrations: Alembic autogenerate rewriter
- hashcol.cli: ``hashcol`` command line
"""

__version__ = "0.1.0"

from hashcol.core import *  # noqa
from hashcol.core import __all__ as _core_all

__all__ = ["__version__", *_core_all]
