"""
FastAPI REST API Module

Exposes the ledger service to terminal front ends: account opening,
card authentication, PIN change, balance and history queries, deposits,
withdrawals and note breakdowns.
"""

from typing import Dict, Optional
from fastapi import FastAPI, HTTPException, Depends, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
import uvicorn

from . import __version__
from .config import TerminalConfig, get_config
from .denominations import DenominationBreakdown
from .directory import AccountDirectory
from .logging_config import get_logger, setup_logging
from .outcomes import LedgerError, Outcome
from .service import LedgerService
from .storage import AccountStore, create_store
from .transactions import Transaction


logger = get_logger("cash_terminal.api")


# Pydantic models for API requests/responses
class AmountRequest(BaseModel):
    amount: str = Field(..., description="Decimal amount as string")


class AuthenticateRequest(BaseModel):
    card_number: str
    pin: str


class ChangePinRequest(BaseModel):
    card_number: str
    old_pin: str
    new_pin: str


class TransactionModel(BaseModel):
    id: str
    timestamp: str
    amount: str
    kind: str

    @classmethod
    def from_transaction(cls, transaction: Transaction) -> 'TransactionModel':
        return cls(
            id=transaction.id,
            timestamp=transaction.timestamp.isoformat(),
            amount=str(transaction.amount),
            kind=transaction.kind.value
        )


class BreakdownModel(BaseModel):
    requested_amount: str
    dispensed_amount: str
    residue: str
    notes: Dict[str, int]

    @classmethod
    def from_breakdown(cls, breakdown: DenominationBreakdown) -> 'BreakdownModel':
        return cls(
            requested_amount=str(breakdown.requested_amount),
            dispensed_amount=str(breakdown.dispensed_amount),
            residue=str(breakdown.residue),
            notes={str(d): count for d, count in breakdown.counts.items()}
        )


ERROR_STATUS = {
    LedgerError.ACCOUNT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    LedgerError.DUPLICATE_ACCOUNT: status.HTTP_409_CONFLICT,
    LedgerError.INVALID_AMOUNT: status.HTTP_400_BAD_REQUEST,
    LedgerError.INSUFFICIENT_FUNDS: status.HTTP_409_CONFLICT,
    LedgerError.LIMIT_EXCEEDED: status.HTTP_403_FORBIDDEN,
}


def raise_for_outcome(outcome: Outcome) -> None:
    """Turn a failed outcome into an HTTP error carrying its kind"""
    if outcome.ok or outcome.is_noop:
        return
    raise HTTPException(
        status_code=ERROR_STATUS.get(outcome.error, status.HTTP_400_BAD_REQUEST),
        detail={"error": outcome.error.value, "message": outcome.message}
    )


# Terminal System Context
class TerminalSystem:
    """Cash terminal core with all components initialized"""

    def __init__(self, config: Optional[TerminalConfig] = None, store: Optional[AccountStore] = None):
        self.config = config or get_config()
        self.store = store or create_store(self.config)
        self.directory = AccountDirectory.from_store(self.store)
        self.service = LedgerService(self.directory, config=self.config)

    def close(self) -> None:
        self.store.close()


_terminal_system: Optional[TerminalSystem] = None


def get_terminal_system() -> TerminalSystem:
    """Dependency returning the process-wide terminal system, built on first use"""
    global _terminal_system
    if _terminal_system is None:
        _terminal_system = TerminalSystem()
    return _terminal_system


def create_app(system: Optional[TerminalSystem] = None) -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="Cash Terminal API",
        description="Account ledger and cash dispensing for self-service terminals",
        version=__version__
    )

    if system is not None:
        app.dependency_overrides[get_terminal_system] = lambda: system

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "healthy", "service": "cash_terminal_api", "version": __version__}

    @app.post("/accounts", status_code=status.HTTP_201_CREATED)
    async def open_account(system: TerminalSystem = Depends(get_terminal_system)):
        """Open a zero-balance account and issue its card number and PIN"""
        account = system.service.open_account()
        return {
            "account_id": account.id,
            "card_number": account.card_number,
            "pin": account.pin,
            "message": "Account created successfully"
        }

    @app.get("/accounts/by-card/{card_number}")
    async def get_account_by_card(card_number: str, system: TerminalSystem = Depends(get_terminal_system)):
        """Look up an account by card number"""
        account = system.service.get_by_card_number(card_number)
        if not account:
            raise HTTPException(status_code=404, detail="Account not found")
        return {
            "account_id": account.id,
            "card_number": account.card_number,
            "balance": str(account.balance),
            "created_at": account.created_at.isoformat()
        }

    @app.post("/auth")
    async def authenticate(request: AuthenticateRequest, system: TerminalSystem = Depends(get_terminal_system)):
        """Check a card number and PIN"""
        authenticated = system.service.authenticate(request.card_number, request.pin)
        response = {"authenticated": authenticated}
        if authenticated:
            response["account_id"] = system.service.get_by_card_number(request.card_number).id
        return response

    @app.post("/pin")
    async def change_pin(request: ChangePinRequest, system: TerminalSystem = Depends(get_terminal_system)):
        """Change the PIN of a card"""
        changed = system.service.change_pin(request.card_number, request.old_pin, request.new_pin)
        return {"changed": changed}

    @app.get("/accounts/{account_id}/balance")
    async def get_balance(account_id: str, system: TerminalSystem = Depends(get_terminal_system)):
        """Get the current balance"""
        if account_id not in system.directory:
            raise HTTPException(status_code=404, detail="Account not found")
        return {"account_id": account_id, "balance": str(system.service.get_balance(account_id))}

    @app.get("/accounts/{account_id}/transactions")
    async def get_transactions(
        account_id: str,
        count: Optional[int] = Query(None, ge=1, le=100),
        system: TerminalSystem = Depends(get_terminal_system)
    ):
        """Get the most recent transactions, newest first"""
        if account_id not in system.directory:
            raise HTTPException(status_code=404, detail="Account not found")
        transactions = system.service.get_recent_transactions(account_id, count)
        return {"transactions": [TransactionModel.from_transaction(t).model_dump() for t in transactions]}

    @app.get("/accounts/{account_id}/limits")
    async def get_limits(account_id: str, system: TerminalSystem = Depends(get_terminal_system)):
        """Get today's withdrawal totals against the daily caps"""
        check = system.service.daily_limit_status(account_id)
        if check is None:
            raise HTTPException(status_code=404, detail="Account not found")
        return {
            "withdrawn_today": str(check.withdrawn_today),
            "withdrawals_today": check.count_today,
            "remaining_amount": str(check.remaining_amount),
            "remaining_withdrawals": check.remaining_count
        }

    @app.post("/accounts/{account_id}/deposits", status_code=status.HTTP_201_CREATED)
    async def deposit(account_id: str, request: AmountRequest, system: TerminalSystem = Depends(get_terminal_system)):
        """Deposit notes into an account"""
        outcome = system.service.deposit(account_id, request.amount)
        raise_for_outcome(outcome)
        return {
            "transaction": TransactionModel.from_transaction(outcome.value).model_dump(),
            "balance": str(system.service.get_balance(account_id))
        }

    @app.post("/accounts/{account_id}/withdrawals", status_code=status.HTTP_201_CREATED)
    async def withdraw(account_id: str, request: AmountRequest, system: TerminalSystem = Depends(get_terminal_system)):
        """Withdraw cash; the response is the only record of what was dispensed"""
        outcome = system.service.withdraw(account_id, request.amount)
        raise_for_outcome(outcome)

        if outcome.is_noop:
            return JSONResponse(status_code=status.HTTP_200_OK, content={
                "dispensed": False,
                "outcome": outcome.error.value,
                "message": outcome.message
            })

        receipt = outcome.value
        return {
            "dispensed": True,
            "transaction": TransactionModel.from_transaction(receipt.transaction).model_dump(),
            "breakdown": BreakdownModel.from_breakdown(receipt.breakdown).model_dump(),
            "balance": str(system.service.get_balance(account_id))
        }

    @app.get("/denominations")
    async def denominations(amount: str, system: TerminalSystem = Depends(get_terminal_system)):
        """Preview the note breakdown for an amount"""
        try:
            breakdown = system.service.calculate_denominations(amount)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return BreakdownModel.from_breakdown(breakdown).model_dump()

    return app


def run_server(host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Run the API server with uvicorn"""
    config = get_config()
    setup_logging(config.log_level, fmt=config.log_format, log_file=config.log_file)
    system = get_terminal_system()
    logger.info(f"Starting cash terminal API with {len(system.directory)} accounts")
    try:
        uvicorn.run(
            create_app(system),
            host=host or config.api_host,
            port=port or config.api_port
        )
    finally:
        system.close()
