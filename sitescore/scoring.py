from __future__ import annotations

import math
from typing import Optional, Sequence, Union

from .config import DEFAULT_POLICY, ScoringPolicy
from .errors import ConfigError
from .logs import get_site_logger
from .models import Document, ScoreRecord, Span
from .suffix_array import SuffixArrayIndex

logger = get_site_logger("SCORE", component="scoring")


class Scorer:
    """Reduce suffix-array queries to one score in ``[0.0, 1.0]`` per document.

    Policies:

    ``max-pairwise``
        longest substring shared with any other document, divided by the
        document's length.
    ``mean-pairwise``
        the same ratio averaged over every other document.
    ``overlap-ratio``
        share of the document's characters covered by a match of at least
        ``min_match_length`` characters (capped at the document length) with
        some other document.

    Empty documents, and every document of a single-document corpus, score 0.0.
    """

    def __init__(
        self,
        policy: Union[str, ScoringPolicy] = DEFAULT_POLICY,
        min_match_length: int = 8,
        evidence_limit: int = 5,
    ) -> None:
        self.policy = ScoringPolicy.parse(policy)
        if min_match_length < 1:
            raise ConfigError(f"min_match_length must be >= 1, got {min_match_length}")
        if evidence_limit < 0:
            raise ConfigError(f"evidence_limit must be >= 0, got {evidence_limit}")
        self.min_match_length = min_match_length
        self.evidence_limit = evidence_limit

    @classmethod
    def from_config(cls, cfg) -> "Scorer":
        return cls(cfg.policy, cfg.min_match_length, cfg.evidence_limit)

    # ------------------------------ Public API ------------------------------ #

    def score(self, document_id: str, index: SuffixArrayIndex) -> ScoreRecord:
        i = index.document_index(document_id)
        if self.policy is ScoringPolicy.OVERLAP_RATIO:
            return self._overlap_record(index, i, index.matching_lengths())
        doc = index.documents[i]
        lengths = {}
        matches = {}
        for other in index.documents:
            if other.id == doc.id:
                continue
            match = index.longest_common_substring(doc.id, other.id)
            lengths[other.id] = match.length
            matches[other.id] = match
        return self._pairwise_record(index, doc, lengths, matches)

    def score_all(self, index: SuffixArrayIndex) -> list[ScoreRecord]:
        """Score every document in corpus order; same records as calling :meth:`score` for each."""
        docs = index.documents
        if self.policy is ScoringPolicy.OVERLAP_RATIO:
            matching = index.matching_lengths()
            records = [self._overlap_record(index, i, matching) for i in range(len(docs))]
        else:
            table = index.pairwise_lcs()
            records = []
            for doc in docs:
                lengths = {other.id: table[(doc.id, other.id)] for other in docs if other.id != doc.id}
                matches = None
                if self.evidence_limit:
                    matches = {
                        other_id: index.longest_common_substring(doc.id, other_id)
                        for other_id in self._evidence_candidates(lengths)
                    }
                records.append(self._pairwise_record(index, doc, lengths, matches))
        logger.info(f"Scored {len(records)} document(s) with policy {self.policy.value}")
        return records

    # ------------------------------ Internals ------------------------------ #

    def _evidence_candidates(self, lengths: dict[str, int]) -> list[str]:
        # longest first; sorted() is stable so ties keep corpus order
        ranked = sorted((oid for oid, n in lengths.items() if n > 0), key=lambda oid: -lengths[oid])
        return ranked[: self.evidence_limit]

    def _pairwise_record(
        self,
        index: SuffixArrayIndex,
        doc: Document,
        lengths: dict[str, int],
        matches: Optional[dict],
    ) -> ScoreRecord:
        if doc.length == 0 or not lengths:
            return ScoreRecord(doc.id, 0.0, self.policy.value)
        ratios = [n / doc.length for n in lengths.values()]
        if self.policy is ScoringPolicy.MAX_PAIRWISE:
            value = max(ratios)
        else:
            value = math.fsum(ratios) / len(ratios)
        evidence: list[Span] = []
        if matches:
            for other_id in self._evidence_candidates(lengths):
                match = matches[other_id]
                evidence.append(
                    Span(
                        document_id=doc.id,
                        offset=match.positions[0],
                        length=match.length,
                        text=match.text,
                        other_document_id=other_id,
                        other_offset=match.positions[1],
                    )
                )
        return ScoreRecord(doc.id, _clamp(value), self.policy.value, tuple(evidence))

    def _overlap_record(self, index: SuffixArrayIndex, i: int, matching: Sequence[int]) -> ScoreRecord:
        doc = index.documents[i]
        if doc.length == 0 or len(index.documents) < 2:
            return ScoreRecord(doc.id, 0.0, self.policy.value)
        start, end = index.corpus.offsets[i]
        threshold = min(self.min_match_length, doc.length)
        spans = covered_spans(matching[start:end], threshold)
        covered = sum(e - s for s, e in spans)
        evidence = tuple(
            Span(document_id=doc.id, offset=s, length=e - s, text=doc.content[s:e])
            for s, e in spans[: self.evidence_limit]
        )
        return ScoreRecord(doc.id, _clamp(covered / doc.length), self.policy.value, evidence)


def covered_spans(matching: Sequence[int], threshold: int) -> list[tuple[int, int]]:
    """Merge ``[p, p + matching[p])`` for every ``matching[p] >= threshold`` into disjoint ranges."""
    spans: list[tuple[int, int]] = []
    cur_start, cur_end = -1, -1
    for p, n in enumerate(matching):
        if n < threshold:
            continue
        if p <= cur_end:
            cur_end = max(cur_end, p + n)
        else:
            if cur_end > cur_start:
                spans.append((cur_start, cur_end))
            cur_start, cur_end = p, p + n
    if cur_end > cur_start:
        spans.append((cur_start, cur_end))
    return spans


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))
