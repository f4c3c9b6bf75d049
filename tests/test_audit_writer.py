"""Tests for CSV and archive output."""

import zipfile

import pytest

from conftest import FIXED_NOW
from adapters.audit_writer import (
    customer_paths,
    prepare_output_root,
    sanitize_for_filename,
    write_audit,
    write_customer_batch,
)
from adapters.csv_exporter import CSV_HEADER, render_csv
from core.domain.identifier import Identifier
from core.domain.models import CustomerBatch, Failed, Invalid, PositionedOutcome, Valid
from core.exceptions import OutputSetupError
from core.services.aggregator import aggregate

EXPECTED_C1_CSV = (
    "customer_id,identifier,status,reason,retrieved_at\n"
    "C1,12345678901,valid,,2026-10-19T12:00:00Z\n"
    "C1,00000000000,invalid,checksum mismatch,\n"
    "C1,98765432109,failed,timeout after 3 attempts,\n"
)


def _scenario_batch(customer_id="C1"):
    outcomes = (
        Valid(
            identifier=Identifier(value="12345678901"),
            payload=b'{"nr": "12345678901"}',
            retrieved_at=FIXED_NOW,
        ),
        Invalid(raw="00000000000", reason="checksum mismatch"),
        Failed(identifier=Identifier(value="98765432109"), reason="timeout after 3 attempts", attempts=3),
    )
    return CustomerBatch(
        customer_id=customer_id,
        outcomes=tuple(PositionedOutcome(position=i, outcome=o) for i, o in enumerate(outcomes)),
    )


class TestCsv:
    def test_header_and_rows(self):
        assert render_csv(_scenario_batch().summary_rows()) == EXPECTED_C1_CSV

    def test_header_constant(self):
        assert ",".join(CSV_HEADER) == "customer_id,identifier,status,reason,retrieved_at"

    def test_reasons_with_commas_are_quoted(self):
        batch = CustomerBatch(
            customer_id="C,1",
            outcomes=(PositionedOutcome(position=0, outcome=Invalid(raw="x", reason="a, b")),),
        )

        assert render_csv(batch.summary_rows()).splitlines()[1] == '"C,1",x,invalid,"a, b",'


class TestCustomerOutput:
    def test_writes_csv_and_archive(self, tmp_path):
        prepare_output_root(tmp_path)

        written = write_customer_batch(_scenario_batch(), tmp_path)

        assert written.ok
        assert written.archived == ("12345678901",)
        assert written.csv_path.read_text(encoding="utf-8") == EXPECTED_C1_CSV
        with zipfile.ZipFile(written.archive_path) as archive:
            assert archive.namelist() == ["12345678901.json"]
            assert archive.read("12345678901.json") == b'{"nr": "12345678901"}'

    def test_stale_files_never_end_up_in_archive(self, tmp_path):
        prepare_output_root(tmp_path)
        csv_path, archive_path = customer_paths(tmp_path, "C1")
        with zipfile.ZipFile(archive_path, "w") as stale:
            stale.writestr("55555555555.json", b"old")
        (archive_path.parent / "98765432109.json").write_bytes(b"left over")

        written = write_customer_batch(_scenario_batch(), tmp_path)

        with zipfile.ZipFile(written.archive_path) as archive:
            assert archive.namelist() == ["12345678901.json"]

    def test_duplicate_identifiers_are_archived_once(self, tmp_path):
        valid = Valid(identifier=Identifier(value="12345678901"), payload=b"{}", retrieved_at=FIXED_NOW)
        batch = CustomerBatch(
            customer_id="C1",
            outcomes=(
                PositionedOutcome(position=0, outcome=valid),
                PositionedOutcome(position=1, outcome=valid),
            ),
        )
        prepare_output_root(tmp_path)

        written = write_customer_batch(batch, tmp_path)

        assert written.archived == ("12345678901",)
        assert len(written.csv_path.read_text(encoding="utf-8").splitlines()) == 3

    def test_customer_without_payloads_gets_empty_archive(self, tmp_path):
        batch = CustomerBatch(
            customer_id="C1",
            outcomes=(PositionedOutcome(position=0, outcome=Invalid(raw="x", reason="malformed")),),
        )
        prepare_output_root(tmp_path)

        written = write_customer_batch(batch, tmp_path)

        with zipfile.ZipFile(written.archive_path) as archive:
            assert archive.namelist() == []

    def test_output_is_byte_identical_across_runs(self, tmp_path):
        result = aggregate([_scenario_batch("C1"), _scenario_batch("C2")])

        first = write_audit(result, tmp_path / "a")
        second = write_audit(result, tmp_path / "b")

        assert first.summary_path.read_bytes() == second.summary_path.read_bytes()
        for one, two in zip(first.customers, second.customers):
            assert one.archive_path.read_bytes() == two.archive_path.read_bytes()
            assert one.csv_path.read_bytes() == two.csv_path.read_bytes()


class TestFailureIsolation:
    def test_one_customer_failure_does_not_block_others(self, tmp_path):
        prepare_output_root(tmp_path)
        _, blocked_archive = customer_paths(tmp_path, "BAD")
        # A directory where the archive should go makes the atomic replace fail.
        blocked_archive.mkdir()
        result = aggregate([_scenario_batch("BAD"), _scenario_batch("GOOD")])

        report = write_audit(result, tmp_path)

        bad, good = report.customers
        assert not bad.ok
        assert "archive" in bad.error
        assert good.ok
        assert good.archive_path.exists()
        assert report.summary_path.exists()
        assert not report.ok
        assert report.failed_customers == ["BAD"]

    def test_unusable_output_root_is_fatal(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("file", encoding="utf-8")

        with pytest.raises(OutputSetupError):
            prepare_output_root(blocker)


class TestSanitize:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("C1", "C1"),
            ("ACME Corp/2024", "ACME-Corp-2024"),
            ("ops@example.com", "ops_example.com"),
            ("../../etc", "etc"),
            ("///", "customer"),
        ],
    )
    def test_slugs(self, value, expected):
        assert sanitize_for_filename(value) == expected
