from __future__ import annotations

import json
import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path

from openpyxl import Workbook

from statement_review import __version__
from statement_review.schema import BUILTIN_LAYOUTS

ROOT = Path(__file__).resolve().parents[1]
CLI = [sys.executable, "-m", "statement_review.cli"]
FIXED_STAMP = "20260301T010203Z"
CONFIG_PREFIXES = ("AZURE_", "REVIEW_", "BATCH_")

V1 = BUILTIN_LAYOUTS["v1"]


def run_cli(*args: str, env: dict[str, str] | None = None) -> subprocess.CompletedProcess[str]:
    merged_env = {key: value for key, value in os.environ.items() if not key.startswith(CONFIG_PREFIXES)}
    merged_env["STATEMENT_REVIEW_OUTPUT_STAMP"] = FIXED_STAMP
    if env:
        merged_env.update(env)
    return subprocess.run(
        [*CLI, *args],
        cwd=ROOT,
        capture_output=True,
        text=True,
        env=merged_env,
    )


def v1_row(**values):
    row = [None] * V1.kym.width
    for name, value in values.items():
        index = V1.mp.index_of(name)
        if index is None:
            index = V1.kym.index_of(name)
        row[index] = value
    return row


def write_review_xlsx(path: Path, sheets: dict[str, list[list]] | None = None) -> Path:
    if sheets is None:
        header = [f"Column {index}" for index in range(V1.kym.width)]
        sheets = {
            "querry": [
                header,
                v1_row(
                    case_id="Case1",
                    doc_id="D1",
                    true_bank_name="Chase",
                    statement_period="01/08/2025 - 31/08/2025",
                    act_last_4_digit=42,
                ),
                v1_row(doc_id="orphan"),
                v1_row(case_id="Case2", doc_id="D2", predicted_bank_name="Wells Fargo"),
            ],
        }
    wb = Workbook()
    wb.remove(wb.active)
    for title, rows in sheets.items():
        ws = wb.create_sheet(title)
        for row in rows:
            ws.append(row)
    wb.save(path)
    return path


class ExtractCommandTests(unittest.TestCase):
    def test_extract_json_stdout_contains_only_json(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_review_xlsx(Path(tmpdir) / "review.xlsx")
            proc = run_cli("extract", str(source), "--json", "--no-write")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertEqual(proc.stderr.strip(), "")
        payload = json.loads(proc.stdout)
        self.assertTrue(payload["success"])
        self.assertEqual([row["case_id"] for row in payload["mpData"]], ["Case1", "Case2"])
        self.assertEqual(payload["mpData"][0]["statement_month"], "August")
        self.assertEqual(payload["mpData"][1]["true_bank_name"], "Wells Fargo")
        self.assertEqual(payload["kymData"][0]["act_last_4_digit"], "0042")
        self.assertEqual(payload["run_summary"]["generated_at"], "1970-01-01T00:00:00Z")
        self.assertEqual(payload["run_summary"]["metrics"]["rows_skipped"], 1)

    def test_extract_writes_json_report_and_refuses_overwrite(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_review_xlsx(Path(tmpdir) / "review.xlsx")
            out_dir = Path(tmpdir) / "out"
            proc = run_cli("extract", str(source), "--out", str(out_dir))
            self.assertEqual(proc.returncode, 0, proc.stderr)
            self.assertIn("Output written:", proc.stderr)
            self.assertIn("MP records: 2", proc.stderr)
            report = json.loads((out_dir / "review.json").read_text(encoding="utf-8"))
            self.assertEqual(report["layout"], "v1")
            self.assertEqual(report["run_summary"]["command"], "extract")

            again = run_cli("extract", str(source), "--out", str(out_dir))
            self.assertEqual(again.returncode, 1)
            self.assertIn("Refusing to overwrite", again.stderr)

    def test_extract_csv_and_xlsx_formats(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_review_xlsx(Path(tmpdir) / "review.xlsx")
            csv_dir = Path(tmpdir) / "csv"
            proc = run_cli("extract", str(source), "--format", "csv", "--out", str(csv_dir), "-q")
            self.assertEqual(proc.returncode, 0, proc.stderr)
            self.assertTrue((csv_dir / "mp.csv").exists())
            self.assertTrue((csv_dir / "kym.csv").exists())

            xlsx_path = Path(tmpdir) / "normalized.xlsx"
            proc = run_cli("extract", str(source), "--format", "xlsx", "--output", str(xlsx_path), "-q")
            self.assertEqual(proc.returncode, 0, proc.stderr)
            self.assertTrue(xlsx_path.exists())

    def test_default_output_directory_uses_stamp(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_review_xlsx(Path(tmpdir) / "stamped_review.xlsx")
            proc = run_cli("extract", str(source), "-q")
            output_dir = ROOT / "statement-review-output" / f"stamped_review-{FIXED_STAMP}"
            try:
                self.assertEqual(proc.returncode, 0, proc.stderr)
                self.assertTrue((output_dir / "review.json").exists())
            finally:
                if (output_dir / "review.json").exists():
                    (output_dir / "review.json").unlink()
                if output_dir.exists():
                    output_dir.rmdir()
                if output_dir.parent.exists() and not any(output_dir.parent.iterdir()):
                    output_dir.parent.rmdir()

    def test_extract_with_batch_uses_batch_sheet(self):
        header = [f"Column {index}" for index in range(V1.kym.width)]
        sheets = {
            "querry": [header, v1_row(case_id="FirstSheet")],
            "this": [header, v1_row(case_id="SecondSheet", doc_id="D9")],
        }
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_review_xlsx(Path(tmpdir) / "review.xlsx", sheets)
            proc = run_cli(
                "extract", str(source), "--batch", "Batch 2", "--json", "--no-write",
                env={"AZURE_STORAGE_ACCOUNT_NAME": "acct", "AZURE_STORAGE_SAS_TOKEN": "sig=1"},
            )
        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual(payload["sheet_name"], "this")
        self.assertEqual(payload["mpData"][0]["case_id"], "SecondSheet")
        self.assertEqual(
            payload["mpData"][0]["doc_link"],
            "https://acct.blob.core.windows.net/bronze/30_batch/D9?sig=1",
        )

    def test_unsupported_file_type_returns_exit_1(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "review.csv"
            path.write_text("a,b\n", encoding="utf-8")
            proc = run_cli("extract", str(path), "--no-write")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("Unsupported file type '.csv'", proc.stderr)

    def test_missing_file_returns_exit_1(self):
        proc = run_cli("extract", "does-not-exist.xlsx")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("File not found", proc.stderr)

    def test_unreadable_workbook_returns_exit_2(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "corrupt.xlsx"
            path.write_bytes(b"this is not a zip archive")
            proc = run_cli("extract", str(path), "--no-write")
        self.assertEqual(proc.returncode, 2)
        self.assertIn("Could not read workbook", proc.stderr)

    def test_missing_sheet_and_bad_layout_return_exit_3(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_review_xlsx(Path(tmpdir) / "review.xlsx")
            missing_sheet = run_cli("extract", str(source), "--sheet", "nope", "--no-write")
            bad_layout = run_cli("extract", str(source), "--layout", "v9", "--no-write")
            env_layout = run_cli("extract", str(source), "--no-write", env={"REVIEW_COLUMN_LAYOUT": "v9"})
        self.assertEqual(missing_sheet.returncode, 3)
        self.assertIn("Sheet 'nope' not found", missing_sheet.stderr)
        self.assertEqual(bad_layout.returncode, 3)
        self.assertIn("Unknown column layout 'v9'", bad_layout.stderr)
        self.assertEqual(env_layout.returncode, 3)

    def test_error_envelope_on_stdout_with_json(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_review_xlsx(Path(tmpdir) / "review.xlsx")
            proc = run_cli("extract", str(source), "--sheet", "nope", "--json", "--no-write")
        self.assertEqual(proc.returncode, 3)
        payload = json.loads(proc.stdout)
        self.assertFalse(payload["success"])
        self.assertEqual(payload["mpData"], [])
        self.assertIn("nope", payload["error"])


class FetchCommandTests(unittest.TestCase):
    def test_fetch_without_credentials_returns_exit_3(self):
        proc = run_cli("fetch", "--json", "--no-write")
        self.assertEqual(proc.returncode, 3)
        payload = json.loads(proc.stdout)
        self.assertFalse(payload["success"])
        self.assertEqual(payload["kymData"], [])
        self.assertIn("AZURE_STORAGE_ACCOUNT_NAME", payload["error"])


class InfoCommandTests(unittest.TestCase):
    def test_batches(self):
        proc = run_cli("batches")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertEqual(proc.stdout.splitlines(), ["Batch 1 (default)", "Batch 2"])

        proc = run_cli("batches", "--json", env={"BATCH_2_SHEET_NAME": "May"})
        payload = json.loads(proc.stdout)
        self.assertEqual(payload["batches"], ["Batch 1", "Batch 2"])
        self.assertEqual(payload["contract"]["name"], "statement_review.batches")

    def test_batches_with_broken_file_returns_exit_3(self):
        proc = run_cli("batches", env={"REVIEW_BATCHES_FILE": "missing-batches.json"})
        self.assertEqual(proc.returncode, 3)
        self.assertIn("Batch file not found", proc.stderr)

    def test_layouts(self):
        proc = run_cli("layouts")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertEqual([line.split(":")[0] for line in proc.stdout.splitlines()], ["v1", "v2", "v3"])

        proc = run_cli("layouts", "v2", "--json")
        payload = json.loads(proc.stdout)
        self.assertEqual(payload["name"], "v2")
        self.assertEqual(payload["kym"]["monthly_number_of_deposits"], 5)

        proc = run_cli("layouts", "v1")
        self.assertIn("Layout: v1", proc.stdout)
        self.assertIn("case_id", proc.stdout)

        proc = run_cli("layouts", "v9")
        self.assertEqual(proc.returncode, 3)

    def test_config_init_and_refuse_overwrite(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "review-batches.json"
            proc = run_cli("config", "init", "--path", str(config_path))
            self.assertEqual(proc.returncode, 0, proc.stderr)
            payload = json.loads(config_path.read_text(encoding="utf-8"))
            self.assertEqual(payload["Batch 3"]["pdf_path_prefix"], "31_batch")

            batches = run_cli("batches", "--json", env={"REVIEW_BATCHES_FILE": str(config_path)})
            self.assertEqual(json.loads(batches.stdout)["batches"], ["Batch 1", "Batch 2", "Batch 3"])

            again = run_cli("config", "init", "--path", str(config_path))
            self.assertEqual(again.returncode, 1)
            self.assertIn("Refusing to overwrite", again.stderr)

    def test_version(self):
        proc = run_cli("version")
        self.assertEqual(proc.returncode, 0)
        self.assertEqual(proc.stdout.strip(), __version__)

    def test_bad_arguments_return_exit_1(self):
        proc = run_cli("extract")
        self.assertEqual(proc.returncode, 1)
        proc = run_cli("extract", "x.xlsx", "--format", "pdf")
        self.assertEqual(proc.returncode, 1)


if __name__ == "__main__":
    unittest.main()
