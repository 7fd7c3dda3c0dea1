"""
Tests for pipeline orchestration and the command line entry point.
"""

import json
from unittest.mock import patch

import pytest
from filelock import FileLock
from pydantic import ValidationError

from job_ledger import main as main_module
from job_ledger.classifier import ClassifierRequestError
from job_ledger.config import Config
from job_ledger.main import (
    MissingInputError,
    apply_overrides,
    main,
    parse_args,
    run_pipeline,
)
from job_ledger.storage import load_ledger, save_ledger

from .conftest import FakeClassifier


def _write_emails(path, ids):
    path.write_text(
        json.dumps(
            [{"message_id": i, "subject": f"Re: {i}", "content": "body"} for i in ids]
        ),
        encoding="utf-8",
    )


@pytest.fixture
def workspace(tmp_path):
    return Config(
        ledger_path=tmp_path / "ledger.csv",
        emails_path=tmp_path / "emails.json",
        batch_size=1,
        rate_limit_delay=0,
    )


class TestApplyOverrides:
    def test_flags_override_config(self, tmp_path):
        args = parse_args(
            ["--days-back", "30", "--output", str(tmp_path / "out.csv"), "--batch-size", "8"]
        )
        config = apply_overrides(Config(), args)

        assert config.days_back == 30
        assert config.ledger_path == tmp_path / "out.csv"
        assert config.batch_size == 8
        assert config.emails_path == Config().emails_path

    def test_unset_flags_keep_config(self):
        config = apply_overrides(Config(batch_size=4), parse_args([]))
        assert config.batch_size == 4

    def test_invalid_override_rejected(self):
        with pytest.raises(ValidationError):
            apply_overrides(Config(), parse_args(["--batch-size", "0"]))


class TestRunPipeline:
    def test_missing_input_when_skipping_extraction(self, workspace):
        with pytest.raises(MissingInputError):
            run_pipeline(workspace, skip_extraction=True, classifier=FakeClassifier([]))

        assert not workspace.ledger_path.exists()

    def test_end_to_end_update_and_insert(self, workspace, make_record, make_result, capsys):
        save_ledger(
            workspace.ledger_path,
            [
                make_record(
                    "A", "TechCorp", "Engineer", application_status="Applied", confidence_score=0.7
                )
            ],
        )
        _write_emails(workspace.emails_path, ["B", "C", "D"])
        classifier = FakeClassifier(
            [
                [
                    make_result(
                        "B",
                        "TechCorp",
                        "Engineer",
                        application_status="Interview Scheduled",
                        confidence_score=0.95,
                        next_action="Prepare",
                    )
                ],
                ClassifierRequestError("timeout"),
                [make_result("D", "Foo", "Bar", application_status="Applied")],
            ]
        )

        stats = run_pipeline(workspace, skip_extraction=True, classifier=classifier)

        assert stats == {
            "emails_loaded": 3,
            "job_related": 2,
            "new_records": 1,
            "updated_records": 1,
            "ledger_total": 2,
        }
        ledger = load_ledger(workspace.ledger_path)
        assert [r.message_id for r in ledger] == ["A", "D"]
        assert ledger[0].application_status == "Interview Scheduled"
        assert ledger[0].confidence_score == 0.95
        assert ledger[0].next_action == "Prepare"
        assert "Total applications tracked: 2" in capsys.readouterr().out

    def test_rerun_with_same_emails_is_stable(self, workspace, make_result):
        _write_emails(workspace.emails_path, ["M1"])

        run_pipeline(
            workspace, skip_extraction=True, classifier=FakeClassifier([[make_result("M1")]])
        )
        first = load_ledger(workspace.ledger_path)
        run_pipeline(
            workspace, skip_extraction=True, classifier=FakeClassifier([[make_result("M1")]])
        )

        assert load_ledger(workspace.ledger_path) == first

    def test_extraction_writes_intermediate_file(self, workspace, make_email):
        with patch.object(
            main_module, "fetch_raw_emails", return_value=[make_email("G1")]
        ) as mock_fetch:
            stats = run_pipeline(workspace, classifier=FakeClassifier([[]]))

        mock_fetch.assert_called_once_with(workspace.days_back, workspace.gmail_query)
        saved = json.loads(workspace.emails_path.read_text(encoding="utf-8"))
        assert saved[0]["message_id"] == "G1"
        assert stats["emails_loaded"] == 1
        assert stats["ledger_total"] == 0

    def test_sheet_mirror_failure_is_not_fatal(self, workspace, make_result):
        config = workspace.model_copy(update={"spreadsheet_id": "sheet-id"})
        _write_emails(config.emails_path, ["M1"])

        with patch.object(
            main_module, "sync_ledger", side_effect=RuntimeError("quota")
        ) as mock_sync:
            stats = run_pipeline(
                config, skip_extraction=True, classifier=FakeClassifier([[make_result("M1")]])
            )

        mock_sync.assert_called_once()
        assert stats["ledger_total"] == 1
        assert config.ledger_path.exists()


class TestMain:
    @pytest.fixture(autouse=True)
    def quiet_logging(self, tmp_path, monkeypatch):
        monkeypatch.setattr(main_module, "LOG_DIR", tmp_path / "logs")
        monkeypatch.setattr(main_module, "setup_logging", lambda *args, **kwargs: None)

    def test_missing_config_file(self, tmp_path):
        assert main(["--config", str(tmp_path / "missing.yaml")]) == 1

    def test_missing_input_returns_error(self, tmp_path):
        config_path = tmp_path / "config.yaml"
        config_path.write_text("rate_limit_delay: 0\n")

        with patch.object(main_module, "setup_logging") as mock_logging:
            code = main(
                [
                    "--config", str(config_path),
                    "--skip-extraction",
                    "--input", str(tmp_path / "absent.json"),
                    "--output", str(tmp_path / "data" / "ledger.csv"),
                ]
            )

        assert code == 1
        mock_logging.assert_not_called()
        assert [p.name for p in tmp_path.iterdir()] == ["config.yaml"]

    def test_locked_ledger_exits_cleanly(self, tmp_path, make_record, monkeypatch):
        monkeypatch.setattr(main_module, "LOCK_TIMEOUT", 0.1)
        config_path = tmp_path / "config.yaml"
        config_path.write_text("rate_limit_delay: 0\n")
        emails = tmp_path / "emails.json"
        _write_emails(emails, ["M1"])
        ledger = tmp_path / "ledger.csv"
        save_ledger(ledger, [make_record("A")])
        before = ledger.read_bytes()

        with patch.object(main_module, "OpenRouterClassifier") as mock_classifier:
            with FileLock(str(ledger) + ".lock"):
                code = main(
                    [
                        "--config", str(config_path),
                        "--skip-extraction",
                        "--input", str(emails),
                        "--output", str(ledger),
                    ]
                )

        assert code == 0
        mock_classifier.assert_not_called()
        assert ledger.read_bytes() == before

    def test_successful_run(self, tmp_path, make_result):
        config_path = tmp_path / "config.yaml"
        config_path.write_text("rate_limit_delay: 0\n")
        emails = tmp_path / "emails.json"
        _write_emails(emails, ["M1"])
        ledger = tmp_path / "ledger.csv"

        with patch.object(
            main_module,
            "OpenRouterClassifier",
            return_value=FakeClassifier([[make_result("M1")]]),
        ):
            code = main(
                [
                    "--config", str(config_path),
                    "--skip-extraction",
                    "--input", str(emails),
                    "--output", str(ledger),
                ]
            )

        assert code == 0
        assert [r.message_id for r in load_ledger(ledger)] == ["M1"]

    def test_corrupt_email_file_returns_error(self, tmp_path):
        config_path = tmp_path / "config.yaml"
        config_path.write_text("rate_limit_delay: 0\n")
        emails = tmp_path / "emails.json"
        emails.write_text("{{{ not json")

        code = main(
            [
                "--config", str(config_path),
                "--skip-extraction",
                "--input", str(emails),
                "--output", str(tmp_path / "ledger.csv"),
            ]
        )

        assert code == 1
