import json

from exposure_kb.cli import build_parser, main
from exposure_kb.pipeline.repository import SqlAlchemyKnowledgeBaseRepository


def test_build_from_reference_transcription(tmp_path, capsys):
    assert main(["--output-dir", str(tmp_path), "--log-level", "WARNING"]) == 0

    document = json.loads((tmp_path / "ai_employment_risks.json").read_text(encoding="utf-8"))
    sidecar = json.loads((tmp_path / "extraction_metadata.json").read_text(encoding="utf-8"))
    assert document["metadata"]["arxivId"] == "2507.07935"
    assert sidecar["occupationCount"] == len(document["occupations"])
    assert "quality score" in capsys.readouterr().out


def test_build_with_exports_and_snapshot(tmp_path):
    database_url = f"sqlite+pysqlite:///{tmp_path / 'kb.db'}"
    log_file = tmp_path / "logs" / "build.log"

    code = main(
        [
            "--output-dir",
            str(tmp_path / "out"),
            "--export-csv",
            "--database-url",
            database_url,
            "--log-file",
            str(log_file),
        ]
    )

    assert code == 0
    assert (tmp_path / "out" / "tables" / "table_1.csv").exists()
    assert (tmp_path / "out" / "extracted_text.txt").exists()
    assert len(SqlAlchemyKnowledgeBaseRepository(database_url).list_snapshots()) == 1
    assert log_file.exists()


def test_parser_defaults(tmp_path):
    parser_args = build_parser().parse_args(["--output-dir", str(tmp_path)])
    assert parser_args.pdf is None
    assert parser_args.source_url == "https://arxiv.org/pdf/2507.07935"
