"""
Update and batch-import submission flow.

Both operations check their client-side preconditions before anything is
sent; a failed precondition never reaches the network.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Optional, Tuple

from clippings.core.exceptions import ValidationError
from clippings.core.gateway import BATCH_IMPORT_ITEMS, UPDATE_INVENTORY

logger = logging.getLogger(__name__)

ACTION_ADD = 'add'
ACTION_SUBTRACT = 'subtract'
ACTION_UPDATE = 'update'
ACTIONS = (ACTION_ADD, ACTION_SUBTRACT, ACTION_UPDATE)

# Actions that move stock and so need a unit
UNIT_REQUIRED_ACTIONS = (ACTION_ADD, ACTION_SUBTRACT)

DEFAULT_MIN_STOCK = 10

# Form values after a successful update
FORM_DEFAULTS = {
    'itemName': '',
    'quantity': '1',
    'unit': '',
    'location': '',
    'notes': '',
}

LEADING_INT = re.compile(r'^\s*([+-]?\d+)')


def parse_int(value) -> Optional[int]:
    """Leading-integer parse: "12 kg" -> 12, "abc" -> None"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    match = LEADING_INT.match(str(value))
    return int(match.group(1)) if match else None


def _text(data, key) -> str:
    value = data.get(key)
    return '' if value is None else str(value)


@dataclass(frozen=True)
class UpdateRequest:
    action: str
    item_name: str
    quantity: Optional[int] = None
    unit: str = ''
    location: str = ''
    notes: str = ''
    reason: str = ''
    min_stock: int = DEFAULT_MIN_STOCK

    @classmethod
    def from_form(cls, action, data):
        """
        Build a request from raw form values.

        Args:
            action: The selected workflow (add, subtract or update)
            data: Mapping with camelCase form keys as the page sends them
        """
        return cls(
            action=action or '',
            item_name=_text(data, 'itemName').strip(),
            quantity=parse_int(data.get('quantity')),
            unit=_text(data, 'unit'),
            location=_text(data, 'location').strip(),
            notes=_text(data, 'notes').strip(),
            reason=_text(data, 'reason'),
            # 0 is not a usable threshold and falls back like a blank field
            min_stock=parse_int(data.get('minStock')) or DEFAULT_MIN_STOCK,
        )

    def validate(self):
        if not self.item_name:
            raise ValidationError('Please enter an item name.')
        if self.action not in ACTIONS:
            raise ValidationError('Please choose an action.')
        if self.action in UNIT_REQUIRED_ACTIONS and not self.unit:
            raise ValidationError('Please select a unit.')

    def to_payload(self) -> dict:
        return {
            'action': self.action,
            'itemName': self.item_name,
            'quantity': self.quantity,
            'unit': self.unit,
            'location': self.location,
            'notes': self.notes,
            'reason': self.reason,
            'minStock': self.min_stock,
        }

    def form_values(self) -> dict:
        return {
            'itemName': self.item_name,
            'quantity': '' if self.quantity is None else str(self.quantity),
            'unit': self.unit,
            'location': self.location,
            'notes': self.notes,
        }


@dataclass(frozen=True)
class UpdateOutcome:
    success: bool
    message: str
    form: dict = field(default_factory=dict)
    error: Optional[Exception] = field(default=None, compare=False)


def submit_update(request: UpdateRequest, gateway) -> UpdateOutcome:
    """
    Validate and submit a single inventory update.

    On success the form comes back reset to its defaults; on any failure
    it comes back with the values the operator entered.
    """
    try:
        request.validate()
    except ValidationError as e:
        return UpdateOutcome(False, e.message, request.form_values(), e)

    result = gateway.invoke(UPDATE_INVENTORY, request.to_payload())
    if not result.ok:
        return UpdateOutcome(False, f'Error: {result.message}', request.form_values(), result.error)

    response = result.payload if isinstance(result.payload, dict) else {}
    message = str(response.get('message') or '')
    if response.get('success'):
        logger.info(f'{request.action} {request.item_name}: {message}')
        return UpdateOutcome(True, message, dict(FORM_DEFAULTS))

    logger.warning(f'{request.action} {request.item_name} rejected: {message}')
    return UpdateOutcome(False, message, request.form_values())


@dataclass(frozen=True)
class BatchLineResult:
    success: bool
    message: str
    line: Optional[str] = None

    @classmethod
    def from_payload(cls, payload):
        payload = payload if isinstance(payload, dict) else {}
        line = payload.get('line')
        return cls(
            success=bool(payload.get('success')),
            message=str(payload.get('message') or ''),
            line=None if line is None else str(line),
        )

    @property
    def display_text(self) -> str:
        if self.success:
            return f'✓ {self.message}'
        return f'✗ {self.line} - {self.message}'


@dataclass(frozen=True)
class BatchImportResult:
    success: bool
    summary: str
    lines: Tuple[BatchLineResult, ...] = ()
    clear_buffer: bool = False
    error: Optional[Exception] = field(default=None, compare=False)

    @property
    def failed_lines(self) -> Tuple[BatchLineResult, ...]:
        return tuple(line for line in self.lines if not line.success)


def submit_batch(raw_text, gateway) -> BatchImportResult:
    """
    Submit several inventory lines as one batch import.

    The input buffer should be cleared only when `clear_buffer` is set,
    i.e. every line was accepted; otherwise the operator corrects and
    resubmits.
    """
    batch_data = (raw_text or '').strip()
    if not batch_data:
        error = ValidationError('Please enter items to import.')
        return BatchImportResult(False, error.message, error=error)

    result = gateway.invoke(BATCH_IMPORT_ITEMS, batch_data)
    if not result.ok:
        return BatchImportResult(False, f'Error: {result.message}', error=result.error)

    response = result.payload if isinstance(result.payload, dict) else {}
    if not response.get('success'):
        return BatchImportResult(False, str(response.get('message') or ''))

    lines = tuple(BatchLineResult.from_payload(item) for item in response.get('results') or [])
    batch = BatchImportResult(
        success=True,
        summary=str(response.get('summary') or ''),
        lines=lines,
        clear_buffer=all(line.success for line in lines),
    )
    logger.info(f'Batch import: {batch.summary} ({len(batch.failed_lines)} failed lines)')
    return batch
