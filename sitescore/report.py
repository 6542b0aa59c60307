from __future__ import annotations

import csv
import dataclasses
import json
from typing import IO, Iterable, Iterator, Optional, Sequence

import httpx

from .config import Config
from .fetch import FetchPipeline
from .logs import get_site_logger
from .models import Corpus, ScoreRecord, UrlOutcome
from .scoring import Scorer
from .suffix_array import SuffixArrayIndex
from .urls import derive_site_slug

FIELDS = ("url", "site", "status", "score", "reason", "evidence")


@dataclasses.dataclass(frozen=True)
class RunReport:
    """Scores plus the fate of every input URL, independent of output format."""

    records: tuple[ScoreRecord, ...]
    outcomes: tuple[UrlOutcome, ...]
    policy: str
    include_evidence: bool = True

    def record_for(self, url: str) -> Optional[ScoreRecord]:
        for record in self.records:
            if record.document_id == url:
                return record
        return None

    def rows(self) -> Iterator[dict]:
        by_id = {r.document_id: r for r in self.records}
        for outcome in sorted(self.outcomes, key=lambda o: o.position):
            record = by_id.get(outcome.url) if outcome.included else None
            row = {
                "url": outcome.url,
                "site": derive_site_slug(outcome.url),
                "status": outcome.state.value,
                "score": record.score if record else None,
                "reason": outcome.reason,
            }
            if self.include_evidence:
                row["evidence"] = [span.as_dict() for span in record.evidence] if record else []
            yield row

    def summary(self) -> dict:
        excluded = [o for o in self.outcomes if not o.included]
        return {
            "policy": self.policy,
            "urls": len(self.outcomes),
            "scored": len(self.records),
            "excluded": len(excluded),
            "excluded_reasons": {o.url: o.reason for o in sorted(excluded, key=lambda o: o.position)},
        }


def score_corpus_outcomes(cfg: Config, outcomes: Sequence[UrlOutcome], corpus: Corpus) -> RunReport:
    index = SuffixArrayIndex.build(corpus, method=cfg.index_method)
    records = Scorer.from_config(cfg).score_all(index)
    return RunReport(
        records=tuple(records),
        outcomes=tuple(outcomes),
        policy=cfg.policy.value,
        include_evidence=cfg.evidence_limit > 0,
    )


async def score_sites(
    cfg: Config,
    urls: Optional[Sequence[str]] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> RunReport:
    """Fetch, index and score ``urls`` (``cfg.sites`` by default).

    Per-URL failures end up in the report; IndexBuildError propagates.
    """
    logger = get_site_logger("ALL", component="report")
    urls = list(cfg.sites if urls is None else urls)
    logger.info(f"Starting run for {len(urls)} URL(s)")
    corpus, outcomes = await FetchPipeline(cfg, client=client).run(urls)
    report = score_corpus_outcomes(cfg, outcomes, corpus)
    summary = report.summary()
    for url, reason in summary["excluded_reasons"].items():
        logger.warning(f"Excluded {url}: {reason}")
    logger.info(f"Run finished: {summary['scored']} scored, {summary['excluded']} excluded")
    return report


# ------------------------------ Emitters ----------------------------------- #


def write_csv(rows: Iterable[dict], fp: IO[str]) -> None:
    rows = list(rows)
    fields = [f for f in FIELDS if any(f in row for row in rows)] or [f for f in FIELDS if f != "evidence"]
    writer = csv.DictWriter(fp, fieldnames=fields, lineterminator="\n")
    writer.writeheader()
    for row in rows:
        out = dict(row)
        if out.get("score") is not None:
            out["score"] = f"{out['score']:.6f}"
        if "evidence" in out:
            out["evidence"] = json.dumps(out["evidence"], ensure_ascii=False) if out["evidence"] else ""
        writer.writerow({k: ("" if out.get(k) is None else out[k]) for k in fields})


def write_json(rows: Iterable[dict], fp: IO[str]) -> None:
    json.dump(list(rows), fp, ensure_ascii=False, indent=2)
    fp.write("\n")


EMITTERS = {"csv": write_csv, "json": write_json}
