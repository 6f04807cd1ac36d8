#!/usr/bin/env python3
"""
Generates sample-data/review_sample.xlsx, a small statement review workbook
in the v1 column layout, for trying out statement-review.

Run from the repo root:
    python sample-data/generate_review_xlsx.py
    statement-review extract sample-data/review_sample.xlsx --batch "Batch 1"

Quirks baked in:
  Sheet "querry" (Batch 1)
    - Month/year left blank on one row; the statement period carries them
      in day-first form ("01/08/2025 - 31/08/2025")
    - Real date cells in the month/year columns
    - True bank name blank on one row (falls back to the predicted name)
    - "Not Provided by Merchant Pulse" in the withheld KYM columns
    - Accounting negatives, "$" and thousands separators in currency cells
    - Last-4 digits typed as a number (0042 stored as 42)
    - A row with no case id (skipped) and a fully empty row
  Sheet "this" (Batch 2)
    - Two clean rows with ISO-dated periods
"""

from datetime import datetime
from pathlib import Path

import openpyxl
from openpyxl.styles import Font

OUTPUT = Path(__file__).parent / "review_sample.xlsx"
NP = "Not Provided by Merchant Pulse"

HEADERS = [
    "Case ID", "Doc ID", "Validator", "Act Last 4", "Monthly Deposit",
    "Funding Transfer Deposits", "Avg Daily Balance", "Return Items",
    "Return Item Days", "Overdraft Days", "Monthly # Deposits",
    "True Bank Name", "Statement Month", "Statement Year", "Account Holder",
    "Predicted Bank Name", "Statement Period", "Account Number",
    "Total Monthly Deposit", "Total Monthly Withdrawals", "# Deposits", "# Withdrawals",
    "MCA Deposit", "MCA Withdrawals", "Returned Item", "Overdrafts",
    "Service Charges", "ATM Cash Withdrawal", "Internal Transfer Deposit",
    "Internal Transfer Withdrawal", "Other Transfer Deposit",
    "Other Transfer Withdrawal", "Standard Deposit", "Standard Withdrawal",
]

# ── Sheet 1: querry ──────────────────────────────────────────────────────────
QUERRY_ROWS = [
    # case      doc          validator  last4   monthly dep    5-9 withheld                  n dep
    ["Case1", "DOC-1001.pdf", "alice", "1234", "$48,210.55", NP, NP, NP, NP, NP, 37,
     # bank   month  year  holder        predicted   period                     account
     "Chase", None, None, "ACME LLC", "Chase Bank", "01/08/2025 - 31/08/2025", "****1234",
     "$48,210.55", "(12,004.10)", 37, 52,
     # MCA block
     "$2,500", "1,200.00", 0, "$35", "(12.00)", 400, 0, 0, "1,000", 0, "$44,710.55", "9,800"],
    ["Case2", "DOC-1002.pdf", "bob", 42, 15300, NP, "varies", NP, NP, NP, "11",
     None, datetime(2025, 7, 1), datetime(2025, 7, 1), "Blue Diner", "Wells Fargo",
     "Jul 1 - Jul 31, 2025", 5550001042,
     15300, 14950.25, 11, 40,
     0, 0, 0, 0, 15, 600, 0, 0, 0, 0, 15300, 14335.25],
    [None, "DOC-ORPHAN.pdf", "carol", "9999", 100, NP, NP, NP, NP, NP, 1,
     "Chase", "June", "2025", "Nobody", "Chase", "June 2025", "0000",
     100, 100, 1, 1,
     0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 100, 100],
    [None] * len(HEADERS),
    ["Case3", "DOC-1003.pdf", "alice", "0077", "$9,004", NP, "$3,120.40", NP, NP, NP, 8,
     "Bank of America", "September", 2025, "Corner Shop", "Bank of America",
     "Statement Period: 09/01/2025 through 09/30/2025", "****0077",
     "$9,004.00", "$8,870.12", 8, 61,
     0, "$250", 0, "$70", 0, "1,150", 0, 0, 0, 0, "$9,004.00", "$7,400.12"],
]

# ── Sheet 2: this ────────────────────────────────────────────────────────────
THIS_ROWS = [
    ["Case10", "DOC-2001.pdf", "dave", "5678", 21000, NP, 5400.75, NP, NP, NP, 19,
     "Citibank", None, None, "Harbor Freight Co", "Citibank", "2025-10-01 to 2025-10-31", "****5678",
     21000, 20500, 19, 33,
     0, 0, 0, 0, 0, 200, 0, 0, 0, 0, 21000, 20300],
    ["Case11", "DOC-2002.pdf", "dave", "8765", 6100, NP, NP, NP, NP, NP, 6,
     "TD Bank", "October", "2025", "Lake Cafe", "TD Bank", "10/01/2025 - 10/31/2025", "****8765",
     6100, 5900, 6, 24,
     0, 0, 0, "$35", "$12", 0, 0, 0, 0, 0, 6100, 5853],
]

wb = openpyxl.Workbook()
ws = wb.active
ws.title = "querry"
ws.append(HEADERS)
for row in QUERRY_ROWS:
    ws.append(row)

ws2 = wb.create_sheet("this")
ws2.append(HEADERS)
for row in THIS_ROWS:
    ws2.append(row)

for sheet in (ws, ws2):
    for cell in sheet[1]:
        cell.font = Font(bold=True)
    sheet.freeze_panes = "A2"

wb.save(OUTPUT)
print(f"Saved: {OUTPUT}")
