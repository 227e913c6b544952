"""
Request and response models for the PumpDev API.

Every request model serializes to the camelCase JSON body the remote endpoint
expects (``publicKey``, ``priorityFee``, ``denominatedInSol`` ...). Optional
fields left as ``None`` are omitted from the body. Response models accept the
camelCase keys the service returns and ignore anything they do not know.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Amount accepted by trade endpoints: SOL (float), token amount, or a percentage string like "100%"
Amount = Union[float, str]


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_body(self) -> Dict[str, Any]:
        """JSON body for the HTTP request."""
        return self.model_dump(by_alias=True, exclude_none=True)


# --- Requests ---

class TradeRequest(ApiModel):
    public_key: str
    action: str  # "buy" | "sell"
    mint: str
    amount: Amount
    denominated_in_sol: str = "true"  # the API expects the string, not a bool
    slippage: float = 15
    priority_fee: float = 0.0005
    jito_tip: Optional[float] = None


class BundleAccount(ApiModel):
    public_key: str
    name: str


class BundleTradeRequest(ApiModel):
    accounts: List[BundleAccount]
    action: str = "sell"
    mint: str
    amount: Amount = "100%"
    denominated_in_sol: str = "false"
    slippage: float = 99
    priority_fee: float = 0.005
    creator: Optional[str] = None  # skips the bonding curve lookup server-side


class TokenMetadata(ApiModel):
    name: str
    symbol: str
    description: str = ""
    twitter: str = ""
    telegram: str = ""
    website: str = ""
    show_name: str = "true"


class CreateTokenRequest(ApiModel):
    public_key: str
    name: str
    symbol: str
    uri: str
    priority_fee: float = 0.001
    amount: Optional[float] = None  # dev buy in SOL
    slippage: Optional[float] = None


class BundleBuyer(ApiModel):
    public_key: str
    amount: float


class CreateBundleRequest(ApiModel):
    public_key: str
    name: str
    symbol: str
    uri: str
    priority_fee: float = 0.001
    amount: Optional[float] = None
    slippage: Optional[float] = None
    jito_tip: float = 0.001
    buyers: List[BundleBuyer] = Field(default_factory=list)


class ClaimRequest(ApiModel):
    public_key: str
    priority_fee: float = 0.0001
    mint: Optional[str] = None


class ClaimAllRequest(ApiModel):
    public_key: str
    mints: List[str]
    priority_fee: float = 0.0001


class DistributeRequest(ApiModel):
    public_key: str
    mint: str
    priority_fee: float = 0.0001


class TransferRequest(ApiModel):
    from_public_key: str
    to_public_key: str
    amount: float
    priority_fee: float = 0.0001


class TransferAllRequest(ApiModel):
    from_public_key: str
    to_public_key: str
    priority_fee: float = 0.0001


# --- Responses ---

class EnvelopeTransaction(ApiModel):
    transaction: Optional[str] = None  # base-58 serialized VersionedTransaction
    signers: List[str] = Field(default_factory=list)
    description: Optional[str] = None
    name: Optional[str] = None
    mint: Optional[str] = None
    error: Optional[str] = None
    fee_sharing: bool = False
    vault_balance: Optional[float] = None


class BundleStats(ApiModel):
    success: int = 0
    total: int = 0
    duration_ms: Optional[float] = None


class TransactionEnvelope(ApiModel):
    mint: Optional[str] = None
    transaction: Optional[str] = None
    transactions: List[EnvelopeTransaction] = Field(default_factory=list)
    mint_secret_key: Optional[str] = None
    signers: List[str] = Field(default_factory=list)
    stats: Optional[BundleStats] = None
    dev_buy: Optional[Any] = None
    estimated_amount: Optional[float] = None
    estimated_fees: Optional[float] = None
    count: Optional[int] = None
    errors: Optional[int] = None


# --- Workflow results ---

class BundleSend(BaseModel):
    name: str
    signature: str


class ClaimResult(BaseModel):
    signature: str
    balance_before: int  # lamports
    balance_after: int

    @property
    def fees_claimed(self) -> int:
        return self.balance_after - self.balance_before


class Recipient(BaseModel):
    address: str
    amount: float  # SOL


class BatchTransferResult(BaseModel):
    attempted: int = 0
    succeeded: int = 0
    total_sent: float = 0.0
    signatures: List[str] = Field(default_factory=list)


# --- WebSocket events ---

class TradeEvent(ApiModel):
    """A ``create`` / ``buy`` / ``sell`` frame from the data feed."""

    tx_type: str
    mint: str
    name: Optional[str] = None
    symbol: Optional[str] = None
    trader_public_key: Optional[str] = None
    sol_amount: Optional[float] = None
    token_amount: Optional[float] = None
    market_cap_sol: Optional[float] = None
    signature: Optional[str] = None
