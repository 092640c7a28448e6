"""Query-string validation for the report pages and endpoints.

Every report accepts the same pagination pair (``page``/``pageSize``) plus a
few optional numeric minimum filters.  Parsing is all-or-nothing: when any
supplied value is invalid the whole parameter set falls back to the defaults,
so a bad link still renders the first page instead of an error.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Union

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 20
MIN_PAGE_SIZE = 5
MAX_PAGE_SIZE = 100

Number = Union[int, float]

logger = logging.getLogger(__name__)


class InvalidParam(ValueError):
	"""Raised when a single query parameter fails coercion or bounds."""


class Field(NamedTuple):
	name: str
	integer: bool = False
	minimum: Optional[Number] = None
	maximum: Optional[Number] = None
	default: Optional[Number] = None


PAGE = Field("page", integer=True, minimum=1, default=DEFAULT_PAGE)
PAGE_SIZE = Field(
	"pageSize",
	integer=True,
	minimum=MIN_PAGE_SIZE,
	maximum=MAX_PAGE_SIZE,
	default=DEFAULT_PAGE_SIZE,
)

REPORT_SCHEMAS: Dict[int, List[Field]] = {
	1: [PAGE, PAGE_SIZE, Field("minIngresos", minimum=0)],
	2: [PAGE, PAGE_SIZE, Field("minGastado", minimum=0), Field("minPedidos", integer=True, minimum=0)],
	3: [PAGE, PAGE_SIZE, Field("minTotalVendido", minimum=0)],
	4: [],
	5: [PAGE, PAGE_SIZE, Field("minTotalCategoria", minimum=0)],
}


def _first(raw: Any, name: str) -> Any:
	# werkzeug MultiDict and plain dicts of lists both collapse to the first value
	if hasattr(raw, "getlist"):
		values = raw.getlist(name)
		return values[0] if values else None
	value = raw.get(name)
	if isinstance(value, (list, tuple)):
		return value[0] if value else None
	return value


def _to_number(value: Any, field: Field) -> Number:
	if isinstance(value, bool):
		raise InvalidParam(f"{field.name} must be a number")
	if isinstance(value, (int, float)):
		parsed = float(value)
	else:
		text = str(value).strip()
		if "_" in text:
			raise InvalidParam(f"{field.name} must be a number")
		try:
			parsed = float(text)
		except ValueError:
			raise InvalidParam(f"{field.name} must be a number")
	if not math.isfinite(parsed):
		raise InvalidParam(f"{field.name} must be finite")
	if field.integer:
		if not parsed.is_integer():
			raise InvalidParam(f"{field.name} must be an integer")
		return int(parsed)
	return parsed


def coerce_field(value: Any, field: Field) -> Optional[Number]:
	"""Coerce one raw value; ``None`` or blank means "not supplied"."""
	if value is None or (isinstance(value, str) and not value.strip()):
		return field.default
	parsed = _to_number(value, field)
	if field.minimum is not None and parsed < field.minimum:
		raise InvalidParam(f"{field.name} must be >= {field.minimum}")
	if field.maximum is not None and parsed > field.maximum:
		raise InvalidParam(f"{field.name} must be <= {field.maximum}")
	return parsed


def default_params(report_id: int) -> Dict[str, Optional[Number]]:
	return {field.name: field.default for field in REPORT_SCHEMAS[report_id]}


def parse_report_params(report_id: int, raw: Mapping[str, Any]) -> Dict[str, Optional[Number]]:
	"""Return validated parameters for ``report_id``.

	Optional filters that were not supplied map to ``None``.  Raises
	``KeyError`` only for an unknown report number.
	"""
	schema = REPORT_SCHEMAS[report_id]
	params: Dict[str, Optional[Number]] = {}
	try:
		for field in schema:
			params[field.name] = coerce_field(_first(raw, field.name), field)
	except InvalidParam as exc:
		logger.debug("report %s: falling back to default params (%s)", report_id, exc)
		return default_params(report_id)
	return params
