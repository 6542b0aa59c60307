import pytest

from sitescore.config import ScoringPolicy
from sitescore.errors import ConfigError
from sitescore.models import Corpus, ScoreRecord, Span
from sitescore.scoring import Scorer, covered_spans
from sitescore.suffix_array import build

POLICIES = [p.value for p in ScoringPolicy]


@pytest.fixture()
def cats():
    return build(Corpus.from_texts(["the cat sat", "the cat ran", "a dog barked"]))


def test_shared_prefix_scores_higher_than_unrelated_document(cats):
    records = Scorer().score_all(cats)

    assert [r.document_id for r in records] == ["doc-0", "doc-1", "doc-2"]
    assert records[0].score == pytest.approx(8 / 11)
    assert records[1].score == pytest.approx(8 / 11)
    assert records[2].score == pytest.approx(1 / 12)
    assert records[0].score > records[2].score
    assert records[1].score > records[2].score


def test_max_pairwise_evidence_lists_best_match_first(cats):
    record = Scorer(evidence_limit=1).score("doc-0", cats)

    assert record.evidence == (
        Span(document_id="doc-0", offset=0, length=8, text="the cat ", other_document_id="doc-1", other_offset=0),
    )


def test_mean_pairwise(cats):
    record = Scorer(ScoringPolicy.MEAN_PAIRWISE).score("doc-0", cats)

    assert record.score == pytest.approx((8 / 11 + 1 / 11) / 2)
    assert record.policy == "mean-pairwise"


def test_overlap_ratio(cats):
    records = Scorer("overlap-ratio", min_match_length=4).score_all(cats)

    assert records[0].score == pytest.approx(8 / 11)
    assert records[0].evidence[0].text == "the cat "
    assert records[2].score == 0.0
    assert records[2].evidence == ()


@pytest.mark.parametrize("policy", POLICIES)
def test_score_matches_score_all(cats, policy):
    scorer = Scorer(policy, min_match_length=3)

    assert scorer.score_all(cats) == [scorer.score(doc.id, cats) for doc in cats.documents]


@pytest.mark.parametrize("policy", POLICIES)
def test_scoring_is_idempotent(policy):
    corpus = Corpus.from_texts(["lorem ipsum dolor", "ipsum dolor sit", "dolor sit amet"])
    first = Scorer(policy).score_all(build(corpus))
    second = Scorer(policy).score_all(build(corpus))

    assert first == second


@pytest.mark.parametrize("policy", POLICIES)
def test_identical_documents_score_one(policy):
    index = build(Corpus.from_texts(["same page text"] * 3))

    assert [r.score for r in Scorer(policy).score_all(index)] == [1.0, 1.0, 1.0]


@pytest.mark.parametrize("policy", POLICIES)
def test_single_character_documents(policy):
    index = build(Corpus.from_texts(["a", "a", "b"]))

    scores = [r.score for r in Scorer(policy).score_all(index)]

    assert scores[2] == 0.0
    assert scores[0] == scores[1] > 0.0


@pytest.mark.parametrize("policy", POLICIES)
def test_empty_and_degenerate_corpora(policy):
    scorer = Scorer(policy)

    assert scorer.score_all(build(Corpus())) == []
    assert scorer.score_all(build(Corpus.from_texts(["alone"]))) == [ScoreRecord("doc-0", 0.0, policy)]
    records = scorer.score_all(build(Corpus.from_texts(["", "abc", "abc"])))
    assert records[0] == ScoreRecord("doc-0", 0.0, policy)


def test_scores_stay_in_unit_interval():
    corpus = Corpus.from_texts(["abababab", "ab", "babababa", "zzz"])
    for policy in POLICIES:
        for record in Scorer(policy, min_match_length=2).score_all(build(corpus)):
            assert 0.0 <= record.score <= 1.0


def test_evidence_can_be_disabled(cats):
    for policy in POLICIES:
        assert all(r.evidence == () for r in Scorer(policy, evidence_limit=0).score_all(cats))


def test_invalid_policy_is_a_config_error():
    with pytest.raises(ConfigError):
        Scorer("median-pairwise")
    with pytest.raises(ConfigError):
        Scorer(min_match_length=0)


def test_covered_spans_merges_overlaps():
    assert covered_spans([3, 2, 1, 0, 4, 3, 2, 1], 2) == [(0, 3), (4, 8)]
    assert covered_spans([1, 1, 1], 2) == []
    assert covered_spans([], 1) == []
