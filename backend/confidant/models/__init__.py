"""ORM Models — SQLAlchemy declarative models for all broker entities.

Invariants:
    - All models inherit from Base (db/base.py)
    - CounselingSession is the aggregate root for transfers and messages

Design Decisions:
    - One file per entity for locality
    - All models imported here so SQLAlchemy resolves string-based relationship()
      references before any query runs
"""

from confidant.models.user import User  # noqa: F401
from confidant.models.counselor import Counselor  # noqa: F401
from confidant.models.session import CounselingSession  # noqa: F401
from confidant.models.session_transfer import SessionTransfer  # noqa: F401
from confidant.models.message import Message  # noqa: F401
from confidant.models.report import Report  # noqa: F401
from confidant.models.appeal import Appeal  # noqa: F401
from confidant.models.audit_entry import AuditEntry  # noqa: F401
from confidant.models.availability_change import AvailabilityChange  # noqa: F401
