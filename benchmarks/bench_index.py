#!/usr/bin/env python3
"""Time suffix array construction and queries over random corpora.

Prints one row per (size, alphabet) pair. The ``build/NlogN`` column stays
roughly flat when construction grows as O(N log N).

    python benchmarks/bench_index.py --sizes 10000 50000 200000 --alphabets 4 26
"""

from __future__ import annotations

import argparse
import math
import random
import string
import time
from typing import Callable, Iterable, Optional

from sitescore.models import Corpus
from sitescore.scoring import Scorer
from sitescore.suffix_array import SuffixArrayIndex

ALPHABET = string.ascii_lowercase + " "


def random_corpus(total: int, alphabet: int, documents: int, rng: random.Random) -> Corpus:
    letters = ALPHABET[: max(1, min(alphabet, len(ALPHABET)))]
    per_doc = max(1, total // documents)
    texts = ["".join(rng.choice(letters) for _ in range(per_doc)) for _ in range(documents)]
    return Corpus.from_texts(texts)


def best_of(fn: Callable[[], object], repeat: int) -> float:
    best = math.inf
    for _ in range(repeat):
        started = time.perf_counter()
        fn()
        best = min(best, time.perf_counter() - started)
    return best


def run(sizes: Iterable[int], alphabets: Iterable[int], documents: int, repeat: int, method: str, seed: int) -> None:
    header = f"{'N':>9} {'sigma':>5} {'build s':>9} {'build/NlogN ns':>15} {'lcs s':>8} {'pairs s':>8} {'count us':>9} {'score s':>8}"
    print(header)
    print("-" * len(header))
    for size in sizes:
        for alphabet in alphabets:
            rng = random.Random(seed)
            corpus = random_corpus(size, alphabet, documents, rng)
            index = SuffixArrayIndex.build(corpus, method=method)
            n = len(index)
            build_s = best_of(lambda: SuffixArrayIndex.build(corpus, method=method), repeat)
            a, b = corpus.ids[0], corpus.ids[-1]
            lcs_s = best_of(lambda: index.longest_common_substring(a, b), repeat)
            pairs_s = best_of(index.pairwise_lcs, repeat)
            probes = [corpus.documents[0].content[i:i + 6] for i in range(0, 600, 6)] or [""]
            count_s = best_of(lambda: [index.occurrence_count(p) for p in probes], repeat) / len(probes)
            scorer = Scorer()
            score_s = best_of(lambda: scorer.score_all(index), repeat)
            per_nlogn = build_s / (n * math.log2(max(n, 2))) * 1e9
            print(
                f"{n:>9} {alphabet:>5} {build_s:>9.3f} {per_nlogn:>15.1f} "
                f"{lcs_s:>8.3f} {pairs_s:>8.3f} {count_s * 1e6:>9.1f} {score_s:>8.3f}"
            )


def main(argv: Optional[Iterable[str]] = None) -> None:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--sizes", type=int, nargs="+", default=[5_000, 20_000, 80_000])
    parser.add_argument("--alphabets", type=int, nargs="+", default=[2, 4, 27])
    parser.add_argument("--documents", type=int, default=8)
    parser.add_argument("--repeat", type=int, default=3)
    parser.add_argument("--method", choices=["doubling", "naive"], default="doubling")
    parser.add_argument("--seed", type=int, default=7)
    args = parser.parse_args(argv)
    run(args.sizes, args.alphabets, args.documents, args.repeat, args.method, args.seed)


if __name__ == "__main__":
    main()
