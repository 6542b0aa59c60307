"""Suffix array + LCP index over a corpus of normalized documents.

The corpus buffer ``doc0 S doc1 S ... docK-1 S`` is encoded as integers:
the separator after document ``i`` becomes code ``i`` and a content
character ``c`` becomes ``ord(c) + K``. Every separator is therefore unique
and smaller than any content character, so two suffixes never share a
prefix that runs through a separator and no match crosses a document
boundary.

Construction is prefix doubling with a stable counting sort per round,
O(N log N). ``method="naive"`` sorts whole suffixes directly,
O(N^2 log N), and is only meant for small inputs and cross-checks.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from .errors import ConfigError, IndexBuildError
from .logs import get_site_logger
from .models import SENTINEL, Corpus, Document, Match

logger = get_site_logger("INDEX", component="index")

INF = float("inf")


# ------------------------------ Construction -------------------------------- #


def encode_corpus(corpus: Corpus) -> tuple[list[int], list[int]]:
    """Return ``(codes, owner)``; ``owner[p]`` is the document index at ``p`` or -1 for a separator."""
    k = len(corpus)
    codes: list[int] = []
    owner: list[int] = []
    for i, doc in enumerate(corpus.documents):
        if SENTINEL in doc.content:
            raise IndexBuildError(
                f"Document {doc.id!r} contains the separator character at offset {doc.content.index(SENTINEL)}"
            )
        codes.extend(ord(c) + k for c in doc.content)
        owner.extend([i] * doc.length)
        codes.append(i)
        owner.append(-1)
    return codes, owner


def _dense_ranks(codes: list[int]) -> tuple[list[int], int]:
    alphabet = sorted(set(codes))
    lookup = {c: r for r, c in enumerate(alphabet)}
    return [lookup[c] for c in codes], len(alphabet)


def _counting_sort(order: list[int], keys: list[int], bound: int) -> list[int]:
    """Stable sort of ``order`` by ``keys[p]``, keys in ``range(bound)``."""
    counts = [0] * (bound + 1)
    for p in order:
        counts[keys[p] + 1] += 1
    for r in range(bound):
        counts[r + 1] += counts[r]
    out = [0] * len(order)
    for p in order:
        r = keys[p]
        out[counts[r]] = p
        counts[r] += 1
    return out


def suffix_array_doubling(codes: list[int]) -> list[int]:
    n = len(codes)
    if n == 0:
        return []
    rank, bound = _dense_ranks(codes)
    sa = _counting_sort(list(range(n)), rank, bound)
    top = bound - 1
    k = 1
    while top < n - 1:
        # Order by the second half first: suffixes shorter than k+1 have an
        # empty second half and sort before everything else.
        by_second = list(range(max(n - k, 0), n))
        by_second.extend(p - k for p in sa if p >= k)
        sa = _counting_sort(by_second, rank, top + 1)

        new_rank = [0] * n
        r = 0
        prev = sa[0]
        prev_key = (rank[prev], rank[prev + k] if prev + k < n else -1)
        for p in sa[1:]:
            key = (rank[p], rank[p + k] if p + k < n else -1)
            if key != prev_key:
                r += 1
                prev_key = key
            new_rank[p] = r
        rank = new_rank
        top = r
        k *= 2
    return sa


def suffix_array_naive(codes: list[int]) -> list[int]:
    return sorted(range(len(codes)), key=lambda p: codes[p:])


def lcp_kasai(codes: list[int], sa: list[int]) -> list[int]:
    """``lcp[i]`` is the common prefix length of suffixes ``sa[i]`` and ``sa[i+1]``."""
    n = len(sa)
    if n < 2:
        return []
    rank = [0] * n
    for i, p in enumerate(sa):
        rank[p] = i
    lcp = [0] * (n - 1)
    h = 0
    for p in range(n):
        r = rank[p]
        if r == n - 1:
            h = 0
            continue
        q = sa[r + 1]
        while p + h < n and q + h < n and codes[p + h] == codes[q + h]:
            h += 1
        lcp[r] = h
        if h:
            h -= 1
    return lcp


_BUILDERS = {
    "doubling": suffix_array_doubling,
    "naive": suffix_array_naive,
}


def build(corpus: Corpus, method: str = "doubling") -> "SuffixArrayIndex":
    return SuffixArrayIndex.build(corpus, method=method)


# --------------------------------- Index ------------------------------------ #


class SuffixArrayIndex:
    """Read-only suffix array index. Build once per corpus, query many times."""

    def __init__(self, corpus: Corpus, codes: list[int], owner: list[int], sa: list[int], lcp: list[int]) -> None:
        self.corpus = corpus
        self._codes = codes
        self._owner = owner
        self._sa = sa
        self._lcp = lcp
        self._by_id = {doc.id: i for i, doc in enumerate(corpus.documents)}

    @classmethod
    def build(cls, corpus: Corpus, method: str = "doubling") -> "SuffixArrayIndex":
        try:
            builder = _BUILDERS[method]
        except KeyError:
            raise ConfigError(f"Unknown suffix array method {method!r} (expected one of: {', '.join(_BUILDERS)})") from None
        seen: dict[str, int] = {}
        for i, doc in enumerate(corpus.documents):
            if doc.id in seen:
                raise IndexBuildError(f"Duplicate document id {doc.id!r} at positions {seen[doc.id]} and {i}")
            seen[doc.id] = i

        started = time.perf_counter()
        codes, owner = encode_corpus(corpus)
        sa = builder(codes)
        lcp = lcp_kasai(codes, sa)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"Built {method} suffix array over {len(corpus)} document(s), "
                f"{len(codes)} position(s) in {time.perf_counter() - started:.3f}s"
            )
        return cls(corpus, codes, owner, sa, lcp)

    # ------------------------------ Accessors ------------------------------ #

    @property
    def suffix_array(self) -> tuple[int, ...]:
        return tuple(self._sa)

    @property
    def lcp(self) -> tuple[int, ...]:
        return tuple(self._lcp)

    @property
    def documents(self) -> tuple[Document, ...]:
        return self.corpus.documents

    def __len__(self) -> int:
        return len(self._sa)

    def document_index(self, document_id: str) -> int:
        try:
            return self._by_id[document_id]
        except KeyError:
            raise KeyError(f"Unknown document id {document_id!r}") from None

    def document_at(self, position: int) -> Optional[Document]:
        """Document owning buffer ``position``, or None for a separator."""
        i = self._owner[position]
        return None if i < 0 else self.corpus.documents[i]

    def _local(self, position: int) -> tuple[int, int]:
        i = self._owner[position]
        return i, position - self.corpus.offsets[i][0]

    def _text(self, position: int, length: int) -> str:
        i, offset = self._local(position)
        return self.corpus.documents[i].content[offset:offset + length]

    # ------------------------------- Queries ------------------------------- #

    def longest_common_substring(self, doc_a: str, doc_b: str) -> Match:
        """Longest substring occurring in both documents.

        Only suffixes of ``doc_a`` and ``doc_b`` are considered; the LCP of two
        such suffixes that are consecutive in that restricted order is the
        minimum LCP across the entries between them. Ties resolve to the first
        pair in suffix-array order, i.e. the lexicographically smallest substring.
        """
        a = self.document_index(doc_a)
        b = self.document_index(doc_b)
        if a == b:
            return Match()
        best = 0
        best_pair: tuple[int, int] = (0, 0)
        prev_owner = -1
        prev_pos = 0
        run = INF
        owner, sa, lcp = self._owner, self._sa, self._lcp
        for i, p in enumerate(sa):
            if i:
                h = lcp[i - 1]
                if h < run:
                    run = h
            d = owner[p]
            if d != a and d != b:
                continue
            if prev_owner >= 0 and prev_owner != d and run > best:
                best = int(run)
                best_pair = (prev_pos, p) if prev_owner == a else (p, prev_pos)
            prev_owner = d
            prev_pos = p
            run = INF
        if best == 0:
            return Match()
        pa, pb = best_pair
        return Match(
            length=best,
            positions=(self._local(pa)[1], self._local(pb)[1]),
            text=self._text(pa, best),
        )

    def pairwise_lcs(self) -> dict[tuple[str, str], int]:
        """LCS length for every ordered pair of distinct documents, in one sweep.

        Gives the same lengths as :meth:`longest_common_substring` pair by pair.
        """
        docs = self.corpus.documents
        k = len(docs)
        best = [[0] * k for _ in range(k)]
        # Documents by latest suffix seen, oldest first, each paired with the
        # minimum LCP from that suffix up to the next entry's suffix. A
        # document's run to the current position is the minimum over its own
        # entry and every newer one.
        recent: list[list] = []
        owner, sa, lcp = self._owner, self._sa, self._lcp
        for i, p in enumerate(sa):
            if i and recent:
                h = lcp[i - 1]
                if h < recent[-1][1]:
                    recent[-1][1] = h
            d = owner[p]
            if d < 0:
                continue
            # (d, e) are consecutive in the restricted order only for the
            # documents seen since d's previous suffix
            run = INF
            j = len(recent) - 1
            while j >= 0:
                e, m = recent[j]
                if m < run:
                    run = m
                if e == d or run == 0:
                    break
                if run > best[d][e]:
                    best[d][e] = best[e][d] = int(run)
                j -= 1
            if j >= 0 and run == 0:
                # every run up to here is 0 from now on
                del recent[:j + 1]
            elif j >= 0:
                if j:
                    recent[j - 1][1] = min(recent[j - 1][1], recent[j][1])
                del recent[j]
            recent.append([d, INF])
        return {
            (docs[x].id, docs[y].id): best[x][y]
            for x in range(k)
            for y in range(k)
            if x != y
        }

    def _bounds(self, pattern: list[int]) -> tuple[int, int]:
        codes, sa = self._codes, self._sa
        m = len(pattern)
        lo, hi = 0, len(sa)
        while lo < hi:
            mid = (lo + hi) // 2
            if codes[sa[mid]:sa[mid] + m] < pattern:
                lo = mid + 1
            else:
                hi = mid
        start = lo
        hi = len(sa)
        while lo < hi:
            mid = (lo + hi) // 2
            if codes[sa[mid]:sa[mid] + m] <= pattern:
                lo = mid + 1
            else:
                hi = mid
        return start, lo

    def _encode_query(self, substring: str) -> Optional[list[int]]:
        if not substring or not self._sa or SENTINEL in substring:
            return None
        k = len(self.corpus)
        return [ord(c) + k for c in substring]

    def occurrence_count(self, substring: str) -> int:
        """Number of documents whose content contains ``substring``."""
        pattern = self._encode_query(substring)
        if pattern is None:
            return 0
        lo, hi = self._bounds(pattern)
        return len({self._owner[self._sa[i]] for i in range(lo, hi)})

    def locate(self, substring: str) -> list[tuple[str, int]]:
        """Every ``(document_id, offset)`` where ``substring`` starts, in corpus order."""
        pattern = self._encode_query(substring)
        if pattern is None:
            return []
        lo, hi = self._bounds(pattern)
        hits = sorted(self._local(self._sa[i]) for i in range(lo, hi))
        docs = self.corpus.documents
        return [(docs[d].id, offset) for d, offset in hits]

    def matching_lengths(self) -> list[int]:
        """For each buffer position, the longest prefix of its suffix that also
        starts somewhere in a different document (0 for separators).
        """
        n = len(self._sa)
        out = [0] * n
        owner, sa, lcp = self._owner, self._sa, self._lcp
        for order in (range(n), range(n - 1, -1, -1)):
            forward = order.step == 1
            # most recent document seen and its running min, plus the most
            # recent entry from any other document
            d1, m1 = -1, INF
            d2, m2 = -1, INF
            first = True
            for i in order:
                if not first:
                    h = lcp[i - 1] if forward else lcp[i]
                    if h < m1:
                        m1 = h
                    if h < m2:
                        m2 = h
                first = False
                p = sa[i]
                d = owner[p]
                if d < 0:
                    continue
                if d1 >= 0 and d1 != d:
                    cand = m1
                elif d2 >= 0:
                    cand = m2
                else:
                    cand = 0
                if cand > out[p]:
                    out[p] = int(cand)
                if d != d1:
                    d2, m2 = d1, m1
                    d1 = d
                m1 = INF
        return out

    def document_matching_lengths(self, document_id: str) -> list[int]:
        i = self.document_index(document_id)
        start, end = self.corpus.offsets[i]
        return self.matching_lengths()[start:end]
