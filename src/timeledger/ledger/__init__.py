"""
Ledger services: the entry mutation engine, timer coordination, audit trail
and range assembly.
"""

from timeledger.ledger.assembly import EntryAssembler
from timeledger.ledger.audit import AuditTrail
from timeledger.ledger.entries import EntryPatch, EntryService
from timeledger.ledger.identity import Identity
from timeledger.ledger.timer import TimerService

__all__ = [
    "AuditTrail",
    "EntryAssembler",
    "EntryPatch",
    "EntryService",
    "Identity",
    "TimerService",
]
