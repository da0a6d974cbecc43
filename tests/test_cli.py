from pathlib import Path

from click.testing import CliRunner
from openpyxl import load_workbook

from txn_dedupe.cli import main

CSV = (
    "id,date,amount,description,source\n"
    "1,2024-01-10 00:00:00,-100.00,Subscription,mono\n"
    "2,2024-01-10 00:00:00,-100.00,Subscription,mono\n"
    "3,2024-01-12 08:00:00,-42.00,Pharmacy,privat\n"
)


def _write_records(tmp_path: Path) -> Path:
    csv_file = tmp_path / "records.csv"
    csv_file.write_text(CSV)
    return csv_file


def test_dedupe_dry_run_prints_summary(tmp_path: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(main, ["dedupe", str(_write_records(tmp_path)), "--dry-run"])

    assert result.exit_code == 0, result.output
    assert "Deduplication Summary" in result.output
    assert "Dry run" in result.output


def test_dedupe_writes_report(tmp_path: Path) -> None:
    output = tmp_path / "out.xlsx"
    runner = CliRunner()
    result = runner.invoke(
        main, ["dedupe", str(_write_records(tmp_path)), "-o", str(output), "--workers", "2"]
    )

    assert result.exit_code == 0, result.output
    assert output.exists()
    assert "Duplicate Groups" in load_workbook(output).sheetnames


def test_dedupe_rejects_invalid_override(tmp_path: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(
        main, ["dedupe", str(_write_records(tmp_path)), "--threshold", "1.5", "--dry-run"]
    )

    assert result.exit_code == 1
    assert "Error" in result.output


def test_check_reports_duplicate(tmp_path: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(
        main,
        [
            "check",
            str(_write_records(tmp_path)),
            "--date",
            "2024-01-10T00:00:00",
            "--amount",
            "-100.00",
            "--description",
            "Subscription",
        ],
    )

    assert result.exit_code == 0, result.output
    assert "yes" in result.output
    assert "exact" in result.output


def test_check_rejects_bad_amount(tmp_path: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(
        main,
        ["check", str(_write_records(tmp_path)), "--date", "2024-01-10", "--amount", "lots"],
    )

    assert result.exit_code == 1


def test_groups_lists_potential_duplicates(tmp_path: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(main, ["groups", str(_write_records(tmp_path))])

    assert result.exit_code == 0, result.output
    assert "Total groups: 1" in result.output
    assert "mono=1" in result.output


def test_init_config_writes_file(tmp_path: Path) -> None:
    output = tmp_path / "config.yaml"
    runner = CliRunner()
    result = runner.invoke(main, ["init-config", "-o", str(output)])

    assert result.exit_code == 0
    assert output.exists()
    assert "similarity_threshold: 0.82" in output.read_text()


def test_groups_reports_invalid_config(tmp_path: Path) -> None:
    config_file = tmp_path / "bad.yaml"
    config_file.write_text("dedup:\n  date_window_days: -1\n")
    runner = CliRunner()
    result = runner.invoke(
        main, ["groups", str(_write_records(tmp_path)), "-c", str(config_file)]
    )

    assert result.exit_code == 1
    assert "Error" in result.output
