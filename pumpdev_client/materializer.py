"""
Turns API response bodies back into solders transactions.

The API returns either the raw serialized transaction as the HTTP body, or a JSON
envelope with one or more base-58 encoded transactions tagged with the signer roles
they need. Nothing here checks what a transaction does; the server is trusted.
"""

from typing import Any, List, Mapping, Optional, Union

import base58
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from solders.transaction import VersionedTransaction

from .errors import MaterializeError
from .models import TransactionEnvelope


class MaterializedTransaction(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    transaction: VersionedTransaction
    signers: List[str] = Field(default_factory=list)
    description: Optional[str] = None
    name: Optional[str] = None

    @property
    def label(self) -> str:
        return self.name or self.description or "transaction"


def from_bytes(data: bytes) -> VersionedTransaction:
    """Deserializes a raw binary transaction body."""
    try:
        return VersionedTransaction.from_bytes(bytes(data))
    except Exception as e:  # solders raises its own error types for bad input
        raise MaterializeError(f"Invalid serialized transaction ({len(data)} bytes): {e}") from e


def from_base58(encoded: str) -> VersionedTransaction:
    """Deserializes a base-58 encoded transaction string."""
    try:
        raw = base58.b58decode(encoded)
    except ValueError as e:
        raise MaterializeError(f"Transaction is not valid base-58: {e}") from e
    return from_bytes(raw)


def parse_envelope(payload: Union[Mapping[str, Any], TransactionEnvelope]) -> TransactionEnvelope:
    if isinstance(payload, TransactionEnvelope):
        return payload
    try:
        return TransactionEnvelope.model_validate(payload)
    except ValidationError as e:
        raise MaterializeError(f"Malformed transaction envelope: {e}") from e


def materialize_envelope(payload: Union[Mapping[str, Any], TransactionEnvelope]) -> List[MaterializedTransaction]:
    """
    Every transaction carried by an envelope, in order.

    A top-level ``transaction`` comes first and takes the envelope-level ``signers``.
    Entries of ``transactions`` without a transaction (build errors) are skipped.
    """
    envelope = parse_envelope(payload)
    items: List[MaterializedTransaction] = []
    if envelope.transaction:
        items.append(MaterializedTransaction(transaction=from_base58(envelope.transaction), signers=list(envelope.signers)))
    for entry in envelope.transactions:
        if not entry.transaction:
            continue
        items.append(
            MaterializedTransaction(
                transaction=from_base58(entry.transaction),
                signers=list(entry.signers),
                description=entry.description,
                name=entry.name,
            )
        )
    return items
