"""
SKU code generation.

Codes look like CH-HN100-R-CN: brand code, category code immediately
followed by a sequence number, variant code and an optional region code.
The sequence continues from the highest stored code for the same brand
and category; the first code of a new pair gets FIRST_SEQUENCE.

Generating several codes in one operation (a bulk create) must not hit
the database for every code, and must not hand out the same number
twice. SkuCodeContext remembers the last number used per brand/category
for ONE such operation; create a fresh context per operation.
"""

import re
from dataclasses import dataclass, field
from typing import Protocol

from inventra.errors import ValidationError

FIRST_SEQUENCE = 100

_CODE_RE = re.compile(r"^[A-Z0-9]+$")


class LastSkuSource(Protocol):
    def get_last_sku(self, brand_code: str, category_code: str, conn=None) -> str | None: ...


@dataclass
class SkuCodeContext:
    """Per-operation memory of the last sequence number issued per brand/category."""

    last_used: dict[tuple[str, str], int] = field(default_factory=dict)
    conn: object = None


def _check_code(name: str, value: str) -> str:
    text = str(value or "").strip().upper()
    if not _CODE_RE.match(text):
        raise ValidationError(
            f"{name} must be letters and digits only", {name: value}
        )
    return text


def parse_sequence(sku: str | None, brand_code: str, category_code: str) -> int | None:
    """Extract the sequence number from a code for the given brand/category."""
    if not sku:
        return None
    match = re.match(rf"^{re.escape(brand_code)}-{re.escape(category_code)}(\d+)(?:-|$)", sku)
    return int(match.group(1)) if match else None


def format_sku(
    brand_code: str,
    category_code: str,
    sequence: int,
    variant_code: str,
    region_code: str | None = None,
) -> str:
    code = f"{brand_code}-{category_code}{sequence}-{variant_code}"
    return f"{code}-{region_code}" if region_code else code


def generate_sku(
    brand_code: str,
    category_code: str,
    variant_code: str,
    region_code: str | None,
    context: SkuCodeContext,
    repository: LastSkuSource,
) -> str:
    """
    Generate the next SKU code for a brand/category.

    The stored maximum is read once per brand/category per context; later
    calls with the same context continue from the memoized number.
    """
    brand_code = _check_code("brandCode", brand_code)
    category_code = _check_code("categoryCode", category_code)
    variant_code = _check_code("variantCode", variant_code)
    if region_code:
        region_code = _check_code("regionCode", region_code)

    key = (brand_code, category_code)
    if key in context.last_used:
        sequence = context.last_used[key] + 1
    else:
        last_sku = repository.get_last_sku(brand_code, category_code, conn=context.conn)
        last_sequence = parse_sequence(last_sku, brand_code, category_code)
        sequence = FIRST_SEQUENCE if last_sequence is None else last_sequence + 1

    context.last_used[key] = sequence
    return format_sku(brand_code, category_code, sequence, variant_code, region_code)
