"""
Duplicate review workflow.

A scan returns pairs of inventory rows that probably describe the same
item. Each pair is reviewed on its own:

    pending -> resolving -> resolved     (merge accepted)
    resolving -> pending                 (merge failed, operator may retry)
    pending -> dismissed                 (keep both rows)

Resolved and dismissed are terminal. Starting a new scan replaces every
candidate; a merge that completes after that belongs to an old scan and
is ignored.
"""
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from clippings.core.exceptions import ClippingsError
from clippings.core.gateway import FIND_DUPLICATES, MERGE_DUPLICATES

logger = logging.getLogger(__name__)

PENDING = 'pending'
RESOLVING = 'resolving'
RESOLVED = 'resolved'
DISMISSED = 'dismissed'

ACTIVE_STATES = (PENDING, RESOLVING)

NO_DUPLICATES_MESSAGE = '✓ No duplicates found! Your inventory is clean.'


class InvalidTransition(ClippingsError):
    """The candidate cannot take that action in its current state"""


class UnknownCandidate(ClippingsError):
    """No candidate with that id in the current scan"""


@dataclass(frozen=True)
class ItemRef:
    name: str
    quantity: Any
    unit: str
    location: str
    row: Optional[int]

    @classmethod
    def from_payload(cls, payload):
        payload = payload or {}
        row = payload.get('row')
        return cls(
            name=str(payload.get('name', '')),
            quantity=payload.get('quantity'),
            unit=str(payload.get('unit') or ''),
            location=str(payload.get('location') or ''),
            row=int(row) if isinstance(row, (int, float)) and not isinstance(row, bool) else None,
        )

    def to_dict(self):
        return {
            'name': self.name,
            'quantity': self.quantity,
            'unit': self.unit,
            'location': self.location,
            'row': self.row,
        }


@dataclass
class DuplicateCandidate:
    candidate_id: str
    item1: ItemRef
    item2: ItemRef
    similarity: Any
    state: str = PENDING
    notice: Optional[str] = None

    @property
    def is_active(self):
        return self.state in ACTIVE_STATES

    def to_dict(self):
        return {
            'candidate_id': self.candidate_id,
            'item1': self.item1.to_dict(),
            'item2': self.item2.to_dict(),
            'similarity': self.similarity,
            'state': self.state,
            'notice': self.notice,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            candidate_id=data['candidate_id'],
            item1=ItemRef.from_payload(data['item1']),
            item2=ItemRef.from_payload(data['item2']),
            similarity=data.get('similarity'),
            state=data.get('state', PENDING),
            notice=data.get('notice'),
        )


@dataclass(frozen=True)
class MergeTicket:
    """Handle for a merge in flight, tied to the scan it was started from"""
    scan_id: str
    candidate_id: str
    keep_first: bool
    item1_name: str
    item2_name: str

    @property
    def parameters(self):
        return {
            'item1Name': self.item1_name,
            'item2Name': self.item2_name,
            'keepFirst': self.keep_first,
        }


@dataclass(frozen=True)
class MergeOutcome:
    candidate_id: str
    resolved: bool
    message: str
    stale: bool = False
    error: Optional[Exception] = field(default=None, compare=False)


@dataclass
class DuplicateWorkflow:
    scan_id: Optional[str] = None
    candidates: List[DuplicateCandidate] = field(default_factory=list)
    message: Optional[str] = None
    scanning: bool = False

    def get(self, candidate_id) -> DuplicateCandidate:
        for candidate in self.candidates:
            if candidate.candidate_id == candidate_id:
                return candidate
        raise UnknownCandidate(f'Duplicate {candidate_id} is not part of the current scan.')

    @property
    def heading(self):
        count = len(self.candidates)
        if not count:
            return None
        return f'Found {count} potential duplicate{"s" if count > 1 else ""}:'

    def begin_scan(self):
        """Drop the current candidates; in-flight merges become stale"""
        self.scan_id = uuid.uuid4().hex
        self.candidates = []
        self.message = None
        self.scanning = True
        return self.scan_id

    def load_scan(self, payload, scan_id=None):
        """
        Replace the candidate set with a findDuplicates payload.

        Args:
            payload: {success, duplicates, message} from the server
            scan_id: The id returned by begin_scan; a mismatch means a newer
                scan already started and this payload is dropped
        """
        if scan_id is not None and scan_id != self.scan_id:
            logger.info(f'Dropping results of superseded scan {scan_id}')
            return False
        if self.scan_id is None or scan_id is None:
            self.begin_scan()

        self.scanning = False
        payload = payload if isinstance(payload, dict) else {}
        if not payload.get('success'):
            self.message = str(payload.get('message') or '')
            return True

        duplicates = [dup for dup in payload.get('duplicates') or [] if isinstance(dup, dict)]
        self.candidates = [
            DuplicateCandidate(
                candidate_id=f'{self.scan_id[:8]}-{index}',
                item1=ItemRef.from_payload(dup.get('item1')),
                item2=ItemRef.from_payload(dup.get('item2')),
                similarity=dup.get('similarity'),
            )
            for index, dup in enumerate(duplicates)
        ]
        self.message = None if self.candidates else NO_DUPLICATES_MESSAGE
        logger.info(f'Scan {self.scan_id} found {len(self.candidates)} duplicate candidates')
        return True

    def fail_scan(self, message, scan_id=None):
        if scan_id is not None and scan_id != self.scan_id:
            return False
        self.scanning = False
        self.candidates = []
        self.message = message
        return True

    def begin_merge(self, candidate_id, keep_first) -> MergeTicket:
        candidate = self.get(candidate_id)
        if candidate.state != PENDING:
            raise InvalidTransition(f'Duplicate {candidate_id} is already {candidate.state}.')
        candidate.state = RESOLVING
        return MergeTicket(
            scan_id=self.scan_id,
            candidate_id=candidate_id,
            keep_first=bool(keep_first),
            item1_name=candidate.item1.name,
            item2_name=candidate.item2.name,
        )

    def complete_merge(self, ticket: MergeTicket, result) -> MergeOutcome:
        """
        Apply the result of a mergeDuplicates call.

        A success payload resolves the candidate and leaves the server's
        message as its notice; anything else puts it back to pending.
        """
        if ticket.scan_id != self.scan_id:
            logger.info(f'Ignoring merge result for {ticket.candidate_id} from superseded scan')
            return MergeOutcome(ticket.candidate_id, False, '', stale=True)

        candidate = self.get(ticket.candidate_id)
        if candidate.state != RESOLVING:
            return MergeOutcome(ticket.candidate_id, False, '', stale=True)

        if not result.ok:
            candidate.state = PENDING
            return MergeOutcome(ticket.candidate_id, False, f'Error: {result.message}', error=result.error)

        response = result.payload if isinstance(result.payload, dict) else {}
        message = str(response.get('message') or '')
        if not response.get('success'):
            candidate.state = PENDING
            return MergeOutcome(ticket.candidate_id, False, f'Error: {message}')

        candidate.state = RESOLVED
        candidate.notice = message
        logger.info(f'Merged {ticket.item1_name} / {ticket.item2_name}: {message}')
        return MergeOutcome(ticket.candidate_id, True, message)

    def dismiss(self, candidate_id):
        candidate = self.get(candidate_id)
        if candidate.state != PENDING:
            raise InvalidTransition(f'Duplicate {candidate_id} is already {candidate.state}.')
        candidate.state = DISMISSED
        logger.debug(f'Dismissed duplicate {candidate_id}')
        return candidate

    def entries(self) -> List[Dict[str, Any]]:
        """Display list in source order; resolved cards become notices"""
        entries = []
        for candidate in self.candidates:
            if candidate.is_active:
                entry = candidate.to_dict()
                entry['kind'] = 'candidate'
                entries.append(entry)
            elif candidate.state == RESOLVED:
                entries.append({
                    'kind': 'notice',
                    'candidate_id': candidate.candidate_id,
                    'message': candidate.notice or '',
                })
        return entries

    def to_dict(self):
        return {
            'scan_id': self.scan_id,
            'candidates': [candidate.to_dict() for candidate in self.candidates],
            'message': self.message,
            'scanning': self.scanning,
        }

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        return cls(
            scan_id=data.get('scan_id'),
            candidates=[DuplicateCandidate.from_dict(c) for c in data.get('candidates', [])],
            message=data.get('message'),
            scanning=data.get('scanning', False),
        )


class DuplicateController:
    """
    Drives a DuplicateWorkflow against the remote store.

    Callers that keep the workflow somewhere shared pass `reload` so a
    merge completion is applied to the latest state rather than the copy
    taken when the merge began.
    """

    def __init__(self, workflow, gateway, reload=None, persist=None):
        self.workflow = workflow
        self.gateway = gateway
        self.reload = reload
        self.persist = persist

    def _save(self):
        if self.persist is not None:
            self.persist(self.workflow)

    def _refresh(self):
        if self.reload is not None:
            self.workflow = self.reload()

    def _release(self, ticket):
        """Put a candidate left resolving by an aborted merge back to pending"""
        self._refresh()
        if ticket.scan_id == self.workflow.scan_id:
            for candidate in self.workflow.candidates:
                if candidate.candidate_id == ticket.candidate_id and candidate.state == RESOLVING:
                    candidate.state = PENDING
        self._save()

    def scan(self):
        scan_id = self.workflow.begin_scan()
        self._save()

        result = self.gateway.invoke(FIND_DUPLICATES, None)

        self._refresh()
        if result.ok:
            self.workflow.load_scan(result.payload, scan_id=scan_id)
        else:
            self.workflow.fail_scan(f'Error: {result.message}', scan_id=scan_id)
        self._save()
        return result

    def resolve(self, candidate_id, keep_first) -> MergeOutcome:
        ticket = self.workflow.begin_merge(candidate_id, keep_first)
        self._save()

        try:
            result = self.gateway.invoke(MERGE_DUPLICATES, ticket.parameters)
        except Exception:
            logger.exception(f'Merge of {candidate_id} aborted')
            self._release(ticket)
            raise

        self._refresh()
        outcome = self.workflow.complete_merge(ticket, result)
        self._save()
        return outcome

    def dismiss(self, candidate_id):
        candidate = self.workflow.dismiss(candidate_id)
        self._save()
        return candidate
