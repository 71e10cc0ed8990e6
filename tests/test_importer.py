import io

import pandas as pd
import pytest

from components.core.errors import ValidationError
from components.transaction.importer import read_transaction_rows


def test_csv_cells_are_kept_as_text():
    content = (
        b" EMAIL ,amount,transaction_type,transaction_date,reference_id,notes\n"
        b"a@example.com,0010.50,bonus,2030-02-01,,ignored\n"
    )
    [row] = read_transaction_rows(content, "batch.CSV")
    assert row == {
        "email": "a@example.com",
        "amount": "0010.50",
        "transaction_type": "bonus",
        "transaction_date": "2030-02-01",
        "description": None,
        "bonus_percentage": None,
        "reference_id": None,
    }


def test_excel_sheet_is_read():
    frame = pd.DataFrame([
        {"email": "a@example.com", "amount": "12.30", "transaction_type": "monthly_payment",
         "transaction_date": "2030-03-01", "description": "March"},
        {"email": "b@example.com", "amount": "7", "transaction_type": "bonus",
         "transaction_date": "2030-03-02", "description": None},
    ])
    buffer = io.BytesIO()
    frame.to_excel(buffer, index=False)

    rows = read_transaction_rows(buffer.getvalue(), "march.xlsx")
    assert [r["email"] for r in rows] == ["a@example.com", "b@example.com"]
    assert rows[0]["amount"] == "12.30"
    assert rows[0]["description"] == "March"
    assert rows[1]["description"] is None


@pytest.mark.parametrize("content, filename, message", [
    (b"email,amount\n", "plans.txt", "Only .csv and .xlsx"),
    (b"email,amount\na@example.com,1\n", "short.csv", "transaction_type, transaction_date"),
    (b"", "empty.csv", "Could not read file"),
    (b"not a workbook", "broken.xlsx", "Could not read file"),
])
def test_unusable_files_are_validation_errors(content, filename, message):
    with pytest.raises(ValidationError, match=message):
        read_transaction_rows(content, filename)
