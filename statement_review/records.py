from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Iterable, Optional, Union


@dataclass(frozen=True)
class MCADetails:
    mca_deposit: float = 0
    mca_withdrawals: float = 0
    returned_item: float = 0
    overdrafts: float = 0
    service_charges: float = 0
    atm_cash_withdrawal: float = 0
    internal_transfer_deposit: float = 0
    internal_transfer_withdrawal: float = 0
    other_transfer_deposit: float = 0
    other_transfer_withdrawal: float = 0
    standard_deposit: float = 0
    standard_withdrawal: float = 0

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class BalanceValue:
    """Average daily balance: a number when parseable, else the raw display text."""

    amount: Optional[float] = None
    text: str = ""

    def display(self) -> Union[float, str]:
        return self.amount if self.amount is not None else self.text


@dataclass(frozen=True)
class MPRecord:
    case_id: str
    doc_id: str
    validator: str = ""
    true_bank_name: str = ""
    statement_month: str = ""
    statement_year: str = ""
    account_holder: str = ""
    predicted_bank_name: str = ""
    statement_period: str = ""
    account_number: str = ""
    total_monthly_deposit: float = 0
    total_monthly_withdrawals: float = 0
    number_of_deposits: int = 0
    number_of_withdrawals: int = 0
    doc_link: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class KYMRecord:
    case_id: str
    doc_id: str
    validator: str = ""
    act_last_4_digit: str = ""
    monthly_deposit: float = 0
    funding_transfer_deposits: float = 0
    avg_daily_balance: BalanceValue = field(default_factory=BalanceValue)
    monthly_number_of_deposits: int = 0
    return_items: int = 0
    return_item_days: int = 0
    overdraft_days: int = 0
    funding_transfer_deposit_amount: float = 0
    mca_details: MCADetails = field(default_factory=MCADetails)
    doc_link: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["avg_daily_balance"] = self.avg_daily_balance.display()
        payload["avg_daily_balance_text"] = self.avg_daily_balance.text
        return payload


Record = Union[MPRecord, KYMRecord]


def records_to_dicts(records: Iterable[Record]) -> list[dict[str, Any]]:
    return [record.to_dict() for record in records]
