"""Paying an invoice: submit the USDC transfer, await the receipt, mark paid.

    idle -> processing -> confirming -> succeeded | failed

Each stage returns a typed result instead of raising, so the UI can show a
targeted message. The on-chain transfer and the status write are not atomic:
if the write fails after a successful receipt the invoice stays pending and
the failure is only logged. Nothing reconciles it afterwards.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from payne.config import RECEIPT_TIMEOUT
from payne.models.invoice import Invoice
from payne.services.chain import ChainClient, to_base_units
from payne.services.exceptions import PaymentStateError
from payne.utils import registry

logger = logging.getLogger(__name__)


class PaymentState(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    CONFIRMING = "confirming"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class PaymentErrorKind(str, Enum):
    USER_REJECTED = "user_rejected"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    INSUFFICIENT_GAS = "insufficient_gas"
    NONCE_CONFLICT = "nonce_conflict"
    WRONG_CHAIN = "wrong_chain"
    NETWORK = "network"
    MISSING_ALLOWANCE = "missing_allowance"
    UNKNOWN = "unknown"


GUIDANCE: dict[PaymentErrorKind, str] = {
    PaymentErrorKind.USER_REJECTED: "You have denied the payment request.",
    PaymentErrorKind.INSUFFICIENT_FUNDS: (
        "Insufficient funds in your wallet to complete this payment."
    ),
    PaymentErrorKind.INSUFFICIENT_GAS: "Not enough ETH to cover gas fees for this transaction.",
    PaymentErrorKind.NONCE_CONFLICT: "Transaction error: Please reset your wallet or try again.",
    PaymentErrorKind.WRONG_CHAIN: (
        "You're connected to the wrong network. Please switch to the correct network."
    ),
    PaymentErrorKind.NETWORK: "Network connection issue. Please check your internet connection.",
    PaymentErrorKind.MISSING_ALLOWANCE: (
        "You need to approve USDC spending before making this payment."
    ),
    PaymentErrorKind.UNKNOWN: "Payment failed. Please try again later.",
}

# First match wins; "insufficient funds for gas" is a funds problem.
_ERROR_PATTERNS: tuple[tuple[PaymentErrorKind, tuple[str, ...]], ...] = (
    (PaymentErrorKind.USER_REJECTED, ("user rejected", "user denied")),
    (PaymentErrorKind.INSUFFICIENT_FUNDS, ("insufficient funds", "exceeds balance")),
    (PaymentErrorKind.INSUFFICIENT_GAS, ("gas",)),
    (PaymentErrorKind.NONCE_CONFLICT, ("nonce",)),
    (PaymentErrorKind.WRONG_CHAIN, ("wrong chain", "wrong network", "chain id", "chainid")),
    (PaymentErrorKind.NETWORK, ("network", "disconnected", "connection", "timed out")),
    (PaymentErrorKind.MISSING_ALLOWANCE, ("allowance", "approve")),
)

CHAIN_FAILURE_MESSAGE = "Transaction failed on the blockchain. Please try again."
CONFIRMATION_FAILURE_MESSAGE = (
    "Failed to confirm transaction. The payment may have gone through; "
    "please check your wallet for status."
)


def classify_payment_error(message: str) -> PaymentErrorKind:
    """Map a wallet/RPC error message to the guidance shown to the payer."""
    text = message.lower()
    for kind, needles in _ERROR_PATTERNS:
        if any(n in text for n in needles):
            return kind
    return PaymentErrorKind.UNKNOWN


@dataclass
class PaymentResult:
    state: PaymentState
    invoice_number: str
    transaction_hash: str | None = None
    message: str = ""
    error_kind: PaymentErrorKind | None = None
    # "submission", "chain" or "confirmation" for failures
    stage: str | None = None
    record_updated: bool = False
    update_error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.state is PaymentState.SUCCEEDED


def _now_utc() -> datetime:
    return datetime.now(UTC)


class PaymentFlow:
    def __init__(
        self,
        chain: ChainClient,
        *,
        find_invoice: Callable[[str], Invoice | None] = registry.find_by_number,
        mark_paid: Callable[..., Invoice] = registry.mark_paid,
        clock: Callable[[], datetime] = _now_utc,
        on_state: Callable[[PaymentState], None] | None = None,
        receipt_timeout: float = RECEIPT_TIMEOUT,
    ) -> None:
        self.chain = chain
        self._find_invoice = find_invoice
        self._mark_paid = mark_paid
        self._clock = clock
        self._on_state = on_state
        self.receipt_timeout = receipt_timeout
        self._state = PaymentState.IDLE

    @property
    def state(self) -> PaymentState:
        return self._state

    def _set_state(self, state: PaymentState) -> None:
        logger.info("Payment state %s -> %s", self._state.value, state.value)
        self._state = state
        if self._on_state is not None:
            self._on_state(state)

    def reset(self) -> None:
        """Return to idle after a failure so the payer can retry."""
        if self._state is PaymentState.SUCCEEDED:
            raise PaymentStateError("Payment already succeeded")
        if self._state is not PaymentState.IDLE:
            self._set_state(PaymentState.IDLE)

    def _fail(self, invoice: Invoice, **fields: object) -> PaymentResult:
        self._set_state(PaymentState.FAILED)
        return PaymentResult(
            state=PaymentState.FAILED,
            invoice_number=invoice.invoice_number,
            **fields,  # type: ignore[arg-type]
        )

    def pay(self, invoice: Invoice) -> PaymentResult:
        """Transfer exactly ``invoice.amount`` USDC to the merchant and record it."""
        if self._state is not PaymentState.IDLE:
            raise PaymentStateError(f"Cannot pay while {self._state.value}")
        if invoice.is_paid:
            raise PaymentStateError(f"{invoice.invoice_number} is already paid")

        self._set_state(PaymentState.PROCESSING)
        try:
            tx_hash = self.chain.transfer_usdc(
                invoice.merchant_address, to_base_units(invoice.amount)
            )
        except Exception as e:
            kind = classify_payment_error(str(e))
            logger.warning("Payment for %s failed on submission (%s): %s",
                           invoice.invoice_number, kind.value, e)
            return self._fail(
                invoice, message=GUIDANCE[kind], error_kind=kind, stage="submission"
            )

        logger.info("Transaction submitted for %s: %s", invoice.invoice_number, tx_hash)
        self._set_state(PaymentState.CONFIRMING)
        try:
            receipt = self.chain.wait_for_receipt(tx_hash, timeout=self.receipt_timeout)
        except Exception:
            logger.error("Error waiting for receipt of %s", tx_hash, exc_info=True)
            return self._fail(
                invoice,
                transaction_hash=tx_hash,
                message=CONFIRMATION_FAILURE_MESSAGE,
                stage="confirmation",
            )

        if not receipt.succeeded:
            logger.warning("Transaction %s reverted", tx_hash)
            return self._fail(
                invoice,
                transaction_hash=tx_hash,
                message=CHAIN_FAILURE_MESSAGE,
                stage="chain",
            )

        updated, update_error = self._record_payment(invoice.invoice_number, tx_hash)
        self._set_state(PaymentState.SUCCEEDED)
        return PaymentResult(
            state=PaymentState.SUCCEEDED,
            invoice_number=invoice.invoice_number,
            transaction_hash=tx_hash,
            message="Payment successful",
            record_updated=updated,
            update_error=update_error,
        )

    def _record_payment(self, invoice_number: str, tx_hash: str) -> tuple[bool, str | None]:
        """Mark the stored invoice paid, looked up by number. Failures are logged, not raised."""
        try:
            record = self._find_invoice(invoice_number)
            if record is None:
                logger.error("Could not find invoice %s to update after tx %s",
                             invoice_number, tx_hash)
                return False, f"Invoice not found: {invoice_number}"
            self._mark_paid(record.id, paid_at=self._clock(), transaction_hash=tx_hash)
        except Exception as e:
            logger.error(
                "Payment %s confirmed but invoice %s was not marked paid",
                tx_hash,
                invoice_number,
                exc_info=True,
            )
            return False, str(e)
        return True, None
