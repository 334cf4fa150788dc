import json
from datetime import UTC, datetime, timedelta
from pathlib import Path

from ledger_db.client import dispose_engines
from typer.testing import CliRunner

from ledger_ingest.cli import app
from ledger_ingest.models import to_epoch_ms
from ledger_ingest.store import LedgerStore

runner = CliRunner()


def test_templates_lists_registry():
    result = runner.invoke(app, ["templates", "--category", "bank"])

    assert result.exit_code == 0, result.output
    assert "hana_bank" in result.output
    assert "woori_card" not in result.output


def test_parse_text_prints_parsed_fields():
    result = runner.invoke(
        app,
        ["parse-text", "[신한카드] 03/05 14:20 스타벅스 5,000원 승인", "--timestamp", "1709616000000"],
    )

    assert result.exit_code == 0, result.output
    assert "스타벅스" in result.output
    assert "5000" in result.output
    assert "카페&간식" in result.output


def test_parse_text_rejects_non_financial_text():
    result = runner.invoke(app, ["parse-text", "hello there"])
    assert result.exit_code == 1


def test_commands_need_a_database_url():
    result = runner.invoke(app, ["init-db"])

    assert result.exit_code == 1
    assert "DATABASE_URL" in result.output


def test_database_url_is_read_from_dotenv(tmp_path: Path):
    db_file = tmp_path / "from-env.sqlite3"
    (tmp_path / ".env").write_text(f"DATABASE_URL=sqlite+pysqlite:///{db_file}\n", encoding="utf-8")

    try:
        result = runner.invoke(app, ["init-db"])
    finally:
        dispose_engines()

    assert result.exit_code == 0, result.output
    assert db_file.exists()


def test_parse_text_save_persists(database_url: str):
    args = ["parse-text", "[신한카드] 03/05 14:20 스타벅스 5,000원 승인", "--save"]
    args += ["--timestamp", "1709616000000", "--database-url", database_url]

    first = runner.invoke(app, args)
    second = runner.invoke(app, args)

    assert first.exit_code == 0, first.output
    assert "persisted" in first.output
    assert "duplicate" in second.output
    assert len(LedgerStore(database_url).list_transactions()) == 1


def test_import_file(database_url: str, tmp_path: Path):
    path = tmp_path / "hana.csv"
    path.write_text(
        "거래일자,적요,출금금액,입금금액\n2024-01-10,스타벅스,5000,\n2024-01-11,월급,,3000000\n",
        encoding="utf-8",
    )

    result = runner.invoke(
        app, ["import-file", str(path), "--upload-id", "u1", "--database-url", database_url]
    )

    assert result.exit_code == 0, result.output
    assert "hana_bank" in result.output
    assert "saved 2" in result.output
    assert len(LedgerStore(database_url).list_transactions(file_upload_id="u1")) == 2


def test_import_file_unknown_template(database_url: str, tmp_path: Path):
    path = tmp_path / "statement.csv"
    path.write_text("Date,Memo,Amount\n2024-01-10,coffee,-5\n", encoding="utf-8")

    result = runner.invoke(app, ["import-file", str(path), "--database-url", database_url])

    assert result.exit_code == 1
    assert "template" in result.output


def test_import_file_missing_path(database_url: str, tmp_path: Path):
    result = runner.invoke(
        app, ["import-file", str(tmp_path / "nope.csv"), "--database-url", database_url]
    )
    assert result.exit_code == 1


def test_backlog_then_balances(database_url: str, tmp_path: Path):
    when = datetime.now(UTC) - timedelta(days=1)
    path = tmp_path / "sms.jsonl"
    path.write_text(
        json.dumps(
            {
                "body": "[신한은행] 03/05 10:00 입금 50,000원 홍길동 잔액 1,050,000원",
                "address": "15778000",
                "date": to_epoch_ms(when),
            },
            ensure_ascii=False,
        )
        + "\n",
        encoding="utf-8",
    )

    backlog = runner.invoke(app, ["backlog", str(path), "--database-url", database_url])
    balances = runner.invoke(app, ["balances", "--snapshot", "--database-url", database_url])

    assert backlog.exit_code == 0, backlog.output
    assert "1 saved" in backlog.output
    assert balances.exit_code == 0, balances.output
    assert "Total assets: 1,050,000" in balances.output
    assert "Snapshot #1 recorded." in balances.output


def test_assign_category(database_url: str):
    store = LedgerStore(database_url)
    runner.invoke(
        app,
        [
            "parse-text",
            "[신한카드] 03/05 14:20 스타벅스 5,000원 승인",
            "--save",
            "--database-url",
            database_url,
        ],
    )

    result = runner.invoke(
        app, ["assign-category", "스타벅스", "식비", "--database-url", database_url]
    )

    assert result.exit_code == 0, result.output
    assert "1 transaction(s) updated" in result.output
    (saved,) = store.list_transactions()
    assert store.get_category_name(saved.category_id) == "식비"


def test_import_file_reports_rejected_rows(database_url: str, tmp_path: Path):
    path = tmp_path / "hana.csv"
    path.write_text(
        "거래일자,적요,출금금액,입금금액\n2024-01-10,스타벅스,5000,\nnot-a-date,이디야,3000,\n",
        encoding="utf-8",
    )

    result = runner.invoke(app, ["import-file", str(path), "--database-url", database_url])

    assert result.exit_code == 0, result.output
    assert "saved 1" in result.output
    assert "status partial" in result.output
    assert "line 3: invalid date" in result.output
