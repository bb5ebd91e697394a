"""Typed request forms and their multipart encoding.

Each form knows the field names the backend expects for its request type.
"""

from __future__ import annotations

import mimetypes
from datetime import date, time
from decimal import Decimal
from pathlib import Path
from typing import ClassVar, Self

from pydantic import BaseModel, Field, model_validator

from hr_selfservice.models.enums import LeaveType, RequestType

FilePart = tuple[str, tuple[str, bytes, str]]


def _fmt(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, time):
        return value.strftime("%H:%M")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def _check_range(start: date | None, end: date | None, label: str) -> None:
    if start is not None and end is not None and end < start:
        msg = f"{label}: end date must not be before start date"
        raise ValueError(msg)


class Attachment(BaseModel):
    """A file to upload."""

    filename: str = Field(min_length=1)
    content: bytes
    content_type: str | None = None

    @classmethod
    def from_path(cls, path: str | Path, content_type: str | None = None) -> Attachment:
        file_path = Path(path)
        return cls(filename=file_path.name, content=file_path.read_bytes(), content_type=content_type)

    def part(self) -> tuple[str, bytes, str]:
        guessed, _ = mimetypes.guess_type(self.filename)
        return (self.filename, self.content, self.content_type or guessed or "application/octet-stream")


# ---------------------------------------------------------------------------
# HR request forms
# ---------------------------------------------------------------------------


class HrRequestForm(BaseModel):
    """Fields shared by every HR request type."""

    request_type: ClassVar[RequestType]

    request_date: date | None = None
    priority: str | None = None
    due_date: date | None = None
    notes: str | None = None
    attachment: Attachment | None = None

    def _type_fields(self) -> dict[str, object]:
        return {}

    def _type_files(self) -> list[FilePart]:
        return []

    def to_form_fields(self) -> dict[str, str]:
        """Multipart text fields, in the order the backend reads them."""
        fields = {"request_type": self.request_type.value}
        for key in ("request_date", "priority", "due_date", "notes"):
            value = getattr(self, key)
            if value:
                fields[key] = _fmt(value)
        fields.update({key: _fmt(value) for key, value in self._type_fields().items()})
        return fields

    def files(self) -> list[FilePart]:
        parts = self._type_files()
        if self.attachment is not None:
            parts.append(("attachment", self.attachment.part()))
        return parts


class LeaveForm(HrRequestForm):
    request_type: ClassVar[RequestType] = RequestType.TO_LEAVE

    leave_type: str
    from_date: date
    to_date: date
    from_time: time | None = None
    to_time: time | None = None
    reason: str = ""

    @model_validator(mode="after")
    def _validate_dates(self) -> Self:
        _check_range(self.from_date, self.to_date, "leave")
        return self

    def _type_fields(self) -> dict[str, object]:
        return {
            "leave_type": self.leave_type,
            "from_date": self.from_date,
            "from_time": self.from_time,
            "to_date": self.to_date,
            "to_time": self.to_time,
            "description": self.reason,
        }


class LoanForm(HrRequestForm):
    request_type: ClassVar[RequestType] = RequestType.LOANS

    loan_date: date
    no_of_payments: int = Field(gt=0)
    amount: Decimal = Field(gt=0)
    reason: str = ""

    def _type_fields(self) -> dict[str, object]:
        return {
            "loan_date": self.loan_date,
            "no_of_payments": self.no_of_payments,
            "amount": self.amount,
            "description": self.reason,
        }


class PersonalDataChangeForm(HrRequestForm):
    request_type: ClassVar[RequestType] = RequestType.PERSONAL_DATA_CHANGE

    personal_data_field: str = Field(min_length=1)
    personal_data_value: str
    description: str = ""

    def _type_fields(self) -> dict[str, object]:
        return {
            "personal_data_field": self.personal_data_field,
            "personal_data_value": self.personal_data_value,
            "description": self.description,
        }


class FinanceClaimItem(BaseModel):
    """One expense line of a finance claim."""

    transaction_date: date
    expense_type: str
    amount: Decimal = Field(gt=0)
    notes: str = ""
    attachment: Attachment | None = None


class FinanceClaimForm(HrRequestForm):
    request_type: ClassVar[RequestType] = RequestType.FINANCE_CLAIM

    items: list[FinanceClaimItem] = Field(min_length=1)

    def _type_fields(self) -> dict[str, object]:
        fields: dict[str, object] = {}
        for i, item in enumerate(self.items):
            prefix = f"financeClaims[{i}]"
            fields[f"{prefix}[transaction_date]"] = item.transaction_date
            fields[f"{prefix}[expense_type]"] = item.expense_type
            fields[f"{prefix}[amount]"] = item.amount
            fields[f"{prefix}[notes]"] = item.notes
        return fields

    def _type_files(self) -> list[FilePart]:
        return [
            (f"financeClaims[{i}][attachment]", item.attachment.part())
            for i, item in enumerate(self.items)
            if item.attachment is not None
        ]


class MiscForm(HrRequestForm):
    """Request for an item; temporary loans of an item need a date range."""

    request_type: ClassVar[RequestType] = RequestType.MISC

    requested_item: str = Field(min_length=1)
    is_temporary: bool = False
    from_date: date | None = None
    from_time: time | None = None
    to_date: date | None = None
    to_time: time | None = None
    reason: str = ""
    misc_notes: str = ""

    @model_validator(mode="after")
    def _validate_temporary(self) -> Self:
        if self.is_temporary:
            if self.from_date is None or self.to_date is None:
                msg = "temporary items require from_date and to_date"
                raise ValueError(msg)
            _check_range(self.from_date, self.to_date, "misc")
        return self

    def _type_fields(self) -> dict[str, object]:
        fields: dict[str, object] = {
            "requested_item": self.requested_item,
            "is_temporary": self.is_temporary,
        }
        if self.is_temporary:
            fields.update(
                {
                    "miscFromDate": self.from_date,
                    "miscFromTime": self.from_time,
                    "miscToDate": self.to_date,
                    "miscToTime": self.to_time,
                }
            )
        fields["miscReason"] = self.reason
        fields["miscNotes"] = self.misc_notes
        return fields


class BusinessTripForm(HrRequestForm):
    request_type: ClassVar[RequestType] = RequestType.BUSINESS_TRIP

    region: str
    from_date: date
    to_date: date
    from_time: time | None = None
    to_time: time | None = None
    reason: str = ""
    attachments: list[Attachment] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_dates(self) -> Self:
        _check_range(self.from_date, self.to_date, "business trip")
        return self

    def _type_fields(self) -> dict[str, object]:
        return {
            "business_trip_region": self.region,
            "description": self.reason,
            "from_date": self.from_date,
            "to_date": self.to_date,
            "from_time": self.from_time,
            "to_time": self.to_time,
        }

    def _type_files(self) -> list[FilePart]:
        return [(f"attachments[{i}]", attachment.part()) for i, attachment in enumerate(self.attachments)]


class BankForm(HrRequestForm):
    request_type: ClassVar[RequestType] = RequestType.BANK

    bank_transaction_date: date
    bank_name: str = Field(min_length=1)
    bank_branch: str = ""
    new_account_number: str = Field(min_length=1)
    new_iban_number: str = Field(min_length=1)
    swift_code: str = ""
    bank_notes: str = ""

    def _type_fields(self) -> dict[str, object]:
        return {
            "bank_transaction_date": self.bank_transaction_date,
            "bank_name": self.bank_name,
            "bank_branch": self.bank_branch,
            "new_account_number": self.new_account_number,
            "new_iban_number": self.new_iban_number.replace(" ", "").upper(),
            "swift_code": self.swift_code,
            "bank_notes": self.bank_notes,
        }


class ResignationForm(HrRequestForm):
    request_type: ClassVar[RequestType] = RequestType.RESIGNATION

    resignation_date: date
    last_working_day: date
    notice_period: int = Field(ge=0)
    resignation_reason: str = ""

    @model_validator(mode="after")
    def _validate_dates(self) -> Self:
        _check_range(self.resignation_date, self.last_working_day, "resignation")
        return self

    def _type_fields(self) -> dict[str, object]:
        return {
            "resignation_date": self.resignation_date,
            "last_working_day": self.last_working_day,
            "notice_period": self.notice_period,
            "resignation_reason": self.resignation_reason,
        }


class HrRequestUpdate(BaseModel):
    """Editable fields for PUT /hr-requests/{id}. Unset fields are not sent."""

    description: str | None = None
    amount: Decimal | None = None
    item_name: str | None = None
    personal_data_field: str | None = None
    personal_data_value: str | None = None
    transaction_date: date | None = None
    loan_period: int | None = None
    request_date: date | None = None
    priority: str | None = None
    due_date: date | None = None
    notes: str | None = None
    attachment: Attachment | None = None

    def to_form_fields(self) -> dict[str, str]:
        return {key: _fmt(value) for key, value in self if key != "attachment" and value not in (None, "")}

    def files(self) -> list[FilePart]:
        return [("attachment", self.attachment.part())] if self.attachment is not None else []


# ---------------------------------------------------------------------------
# Vacation form
# ---------------------------------------------------------------------------


class VacationForm(BaseModel):
    """Request body for POST {prefix}/vacation-requests."""

    leave_type: LeaveType
    start_date: date
    end_date: date
    country: str = ""
    phone_number: str = ""
    location_in_country: str = ""
    description: str = ""
    attachment: Attachment | None = None

    @model_validator(mode="after")
    def _validate_dates(self) -> Self:
        _check_range(self.start_date, self.end_date, "vacation")
        return self

    @property
    def requested_days(self) -> int:
        """Calendar days covered, both ends included."""
        return (self.end_date - self.start_date).days + 1

    def to_form_fields(self) -> dict[str, str]:
        return {
            "leave_type": self.leave_type.value,
            "start_date": _fmt(self.start_date),
            "end_date": _fmt(self.end_date),
            "country": self.country,
            "phone_number": self.phone_number,
            "location_in_country": self.location_in_country,
            "description": self.description,
        }

    def files(self) -> list[FilePart]:
        return [("attachment", self.attachment.part())] if self.attachment is not None else []


# ---------------------------------------------------------------------------
# Exit / entry visa form
# ---------------------------------------------------------------------------


class ExitEntryForm(BaseModel):
    """Request body for POST /exit-entry-requests."""

    validity_from_date: date
    validity_to_date: date
    visa_type: str = Field(min_length=1)
    period_in_days: int = Field(gt=0)
    reason: str = ""
    document: Attachment | None = None

    @model_validator(mode="after")
    def _validate_dates(self) -> Self:
        _check_range(self.validity_from_date, self.validity_to_date, "exit/entry validity")
        return self

    def to_form_fields(self) -> dict[str, str]:
        return {
            "validity_from_date": _fmt(self.validity_from_date),
            "validity_to_date": _fmt(self.validity_to_date),
            "visa_type": self.visa_type,
            "period_in_days": _fmt(self.period_in_days),
            "reason": self.reason,
        }

    def files(self) -> list[FilePart]:
        return [("document", self.document.part())] if self.document is not None else []


AnyHrRequestForm = (
    LeaveForm
    | LoanForm
    | PersonalDataChangeForm
    | FinanceClaimForm
    | MiscForm
    | BusinessTripForm
    | BankForm
    | ResignationForm
)
