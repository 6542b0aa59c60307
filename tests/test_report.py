import csv
import io
import json

import pytest

from sitescore.cli import EXIT_CONFIG, load_config, main, parse_args, read_urls_file
from sitescore.config import Config
from sitescore.errors import IndexBuildError
from sitescore.fetch import assemble_corpus
from sitescore.models import Corpus, Document, UrlOutcome, UrlState
from sitescore.report import RunReport, score_corpus_outcomes, write_csv, write_json


def included(url, position, text):
    o = UrlOutcome(url=url, position=position)
    for state in (UrlState.FETCHING, UrlState.FETCHED, UrlState.NORMALIZED):
        o.advance(state)
    o.document = Document(url, text)
    o.status_code = 200
    return o


def failed(url, position, reason):
    o = UrlOutcome(url=url, position=position)
    o.advance(UrlState.FETCHING)
    o.advance(UrlState.FETCH_FAILED, reason=reason)
    o.advance(UrlState.EXCLUDED)
    return o


@pytest.fixture()
def report():
    outcomes = [
        included("https://www.example.com/", 0, "the cat sat"),
        failed("https://down.example.org/", 1, "timed out after 20s"),
        included("https://example.net/", 2, "the cat ran"),
    ]
    corpus = assemble_corpus(outcomes)
    return score_corpus_outcomes(Config(evidence_limit=2), outcomes, corpus)


def test_rows_cover_every_url_in_input_order(report):
    rows = list(report.rows())

    assert [r["url"] for r in rows] == [
        "https://www.example.com/",
        "https://down.example.org/",
        "https://example.net/",
    ]
    assert rows[0]["site"] == "example-com"
    assert rows[0]["status"] == "included"
    assert rows[0]["score"] == pytest.approx(8 / 11)
    assert rows[0]["evidence"][0]["text"] == "the cat "
    assert rows[1]["status"] == "excluded"
    assert rows[1]["score"] is None
    assert rows[1]["reason"] == "timed out after 20s"
    assert rows[1]["evidence"] == []


def test_summary(report):
    summary = report.summary()

    assert summary["urls"] == 3
    assert summary["scored"] == 2
    assert summary["excluded"] == 1
    assert summary["excluded_reasons"] == {"https://down.example.org/": "timed out after 20s"}
    assert report.record_for("https://example.net/").score == pytest.approx(8 / 11)
    assert report.record_for("https://down.example.org/") is None


def test_write_csv(report):
    out = io.StringIO()
    write_csv(report.rows(), out)

    rows = list(csv.DictReader(io.StringIO(out.getvalue())))
    assert list(rows[0]) == ["url", "site", "status", "score", "reason", "evidence"]
    assert rows[0]["score"] == "0.727273"
    assert json.loads(rows[0]["evidence"])[0]["other_document_id"] == "https://example.net/"
    assert rows[1]["score"] == ""
    assert rows[1]["evidence"] == ""


def test_write_json(report):
    out = io.StringIO()
    write_json(report.rows(), out)

    data = json.loads(out.getvalue())
    assert [d["status"] for d in data] == ["included", "excluded", "included"]
    assert data[1]["reason"] == "timed out after 20s"


def test_evidence_column_is_omitted_when_not_computed():
    outcomes = [included("https://a.example.com/", 0, "abc"), included("https://b.example.com/", 1, "abd")]
    report = score_corpus_outcomes(Config(evidence_limit=0), outcomes, assemble_corpus(outcomes))

    rows = list(report.rows())
    assert all("evidence" not in r for r in rows)
    out = io.StringIO()
    write_csv(rows, out)
    assert out.getvalue().splitlines()[0] == "url,site,status,score,reason"


def test_index_build_errors_propagate():
    with pytest.raises(IndexBuildError):
        score_corpus_outcomes(Config(), [], Corpus.from_texts(["bad\x00text"]))


def test_empty_run_produces_empty_report():
    report = score_corpus_outcomes(Config(), [], Corpus())

    assert isinstance(report, RunReport)
    assert list(report.rows()) == []
    out = io.StringIO()
    write_csv(report.rows(), out)
    assert out.getvalue() == "url,site,status,score,reason\n"


def test_read_urls_file(tmp_path):
    path = tmp_path / "urls.txt"
    path.write_text("# sites\nhttps://a.example.com/\n\n  https://b.example.com/  # trailing\n", encoding="utf-8")

    assert read_urls_file(path) == ["https://a.example.com/", "https://b.example.com/"]


def test_load_config_merges_sources(tmp_path):
    cfg_path = tmp_path / "cfg.yaml"
    cfg_path.write_text("sites: [https://a.example.com/]\nconcurrency: 4\n", encoding="utf-8")
    urls = tmp_path / "urls.txt"
    urls.write_text("https://b.example.com/\n", encoding="utf-8")

    args = parse_args(
        ["-c", str(cfg_path), "--urls-file", str(urls), "--policy", "overlap-ratio", "-f", "json", "https://c.example.com/"]
    )
    cfg = load_config(args)

    assert cfg.sites == ("https://a.example.com/", "https://b.example.com/", "https://c.example.com/")
    assert cfg.concurrency == 4
    assert cfg.policy.value == "overlap-ratio"
    assert cfg.output_format == "json"


def test_main_without_sites_is_a_config_error():
    assert main([]) == EXIT_CONFIG
