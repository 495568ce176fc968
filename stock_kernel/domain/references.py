"""
DocumentRef - typed link from an inventory transaction to its source document.

Every InventoryTransaction points back at the document that caused it.
Rather than a free-form (reference_type, reference_id) string pair, the
domain uses a closed enum of reference kinds so handling code can match
exhaustively and a typo cannot invent a new kind.

Persistence still uses two columns; ``DocumentRef.parse`` and ``str()``
convert to and from the ``"kind:uuid"`` form used in logs.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class ReferenceKind(str, Enum):
    """Kinds of documents that move stock."""

    SALE = "Sale"
    STOCK_ADJUSTMENT = "StockAdjustment"
    STOCK_TRANSFER = "StockTransfer"


@dataclass(frozen=True, slots=True)
class DocumentRef:
    """
    Immutable reference to a stock-moving document.

    Self-describing pointer: kind plus identifier.
    """

    kind: ReferenceKind
    document_id: UUID

    def __post_init__(self) -> None:
        if not isinstance(self.kind, ReferenceKind):
            raise ValueError(
                f"kind must be ReferenceKind, got {type(self.kind)}"
            )
        if not isinstance(self.document_id, UUID):
            raise ValueError(
                f"document_id must be UUID, got {type(self.document_id)}"
            )

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.document_id}"

    @classmethod
    def parse(cls, ref_string: str) -> DocumentRef:
        """
        Parse a string representation back to DocumentRef.

        Format: "kind:uuid"
        """
        try:
            kind_str, id_str = ref_string.split(":", 1)
            return cls(
                kind=ReferenceKind(kind_str),
                document_id=UUID(id_str),
            )
        except ValueError as e:
            raise ValueError(f"Invalid document ref string: {ref_string}") from e

    @classmethod
    def sale(cls, sale_id: UUID) -> DocumentRef:
        """Create ref to a Sale."""
        return cls(ReferenceKind.SALE, sale_id)

    @classmethod
    def adjustment(cls, adjustment_id: UUID) -> DocumentRef:
        """Create ref to a StockAdjustment."""
        return cls(ReferenceKind.STOCK_ADJUSTMENT, adjustment_id)

    @classmethod
    def transfer(cls, transfer_id: UUID) -> DocumentRef:
        """Create ref to a StockTransfer."""
        return cls(ReferenceKind.STOCK_TRANSFER, transfer_id)
