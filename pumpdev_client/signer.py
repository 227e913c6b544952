"""
Local transaction signing.

Transactions returned by the API are unsigned (or partially signed). Signatures are
placed at the index of the matching key among the message's required signers, so a
transaction can be signed in several passes and keeps any signature it already carries.
Secret keys are only ever used in-process.
"""

from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from mcp.server.fastmcp.utilities.logging import get_logger
from solders.keypair import Keypair
from solders.message import to_bytes_versioned
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from .errors import MissingSignerError, SigningError
from .materializer import MaterializedTransaction

logger = get_logger(__name__)

CREATOR_ROLE = "creator"
MINT_ROLE = "mint"


def sign_transaction(tx: VersionedTransaction, keypairs: Sequence[Keypair]) -> VersionedTransaction:
    """Returns a copy of ``tx`` with a signature from each keypair in ``keypairs``."""
    message = tx.message
    required = message.header.num_required_signatures
    signer_keys = list(message.account_keys[:required])

    signatures: List[Signature] = list(tx.signatures)[:required]
    signatures += [Signature.default()] * (required - len(signatures))

    payload = to_bytes_versioned(message)
    for keypair in keypairs:
        pubkey = keypair.pubkey()
        try:
            index = signer_keys.index(pubkey)
        except ValueError:
            raise SigningError(f"{pubkey} is not a required signer of this transaction") from None
        signatures[index] = keypair.sign_message(payload)

    return VersionedTransaction.populate(message, signatures)


def count_signatures(tx: VersionedTransaction) -> int:
    """Number of signature slots holding a real (non-placeholder) signature."""
    placeholder = Signature.default()
    return sum(1 for sig in tx.signatures if sig != placeholder)


class SignerRegistry:
    """Explicit mapping from signer role (``creator``, ``mint``, ``buyer1`` ...) to keypair."""

    def __init__(self, keypairs: Optional[Mapping[str, Keypair]] = None):
        self._keypairs: Dict[str, Keypair] = {}
        for role, keypair in (keypairs or {}).items():
            self.add(role, keypair)

    def add(self, role: str, keypair: Keypair) -> None:
        self._keypairs[role.lower()] = keypair

    def get(self, role: str) -> Optional[Keypair]:
        return self._keypairs.get(role.lower())

    def roles(self) -> List[str]:
        return list(self._keypairs)

    def __contains__(self, role: str) -> bool:
        return role.lower() in self._keypairs

    def __len__(self) -> int:
        return len(self._keypairs)

    def with_role(self, role: str, keypair: Keypair) -> "SignerRegistry":
        """Copy of this registry with one extra role (e.g. a freshly generated mint)."""
        registry = SignerRegistry(self._keypairs)
        registry.add(role, keypair)
        return registry

    def resolve(self, roles: Iterable[str], strict: bool = True) -> List[Keypair]:
        """
        Keypairs for the declared roles, in declaration order, duplicates collapsed.

        With ``strict`` a role that has no credential raises MissingSignerError.
        Without it the role is dropped with a warning and the transaction will be
        submitted under-signed (the network rejects it).
        """
        keypairs: List[Keypair] = []
        seen = set()
        missing: List[str] = []
        for role in roles:
            key = role.lower()
            if key in seen:
                continue
            seen.add(key)
            keypair = self._keypairs.get(key)
            if keypair is None:
                missing.append(role)
                continue
            keypairs.append(keypair)

        if missing:
            if strict:
                raise MissingSignerError(missing)
            logger.warning(f"Dropping unknown signer role(s) {missing}; transaction will be under-signed")
        return keypairs


def sign_materialized(
    item: MaterializedTransaction, registry: SignerRegistry, strict: bool = True
) -> VersionedTransaction:
    """Signs a materialized transaction with the keypairs for its declared roles."""
    keypairs = registry.resolve(item.signers, strict=strict)
    logger.debug(f"Signing '{item.label}' with roles {item.signers}")
    return sign_transaction(item.transaction, keypairs)
