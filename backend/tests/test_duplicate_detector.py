import pytest

from civic_pipeline.domain.errors import IssueNotFoundError, ValidationError
from civic_pipeline.domain.models import DuplicateMatch
from civic_pipeline.engine.duplicate_detector import DuplicateDetector
from civic_pipeline.repositories.collections import ISSUE_COMMENTS, ISSUES

from tests.fakes import NEW_DELHI, NEW_DELHI_50M_NORTH, days_ago, issue_doc


@pytest.fixture
def detector(issue_repo):
    return DuplicateDetector(issue_repo, window_days=7, min_score=0.6, radius_meters=100.0)


@pytest.fixture
def new_delhi_issues(store):
    """Subject issue plus one genuine near-duplicate and several decoys"""
    store.seed(ISSUES, {"id": "original", **issue_doc(title="Pothole on main road", location=NEW_DELHI_50M_NORTH, reported_at=days_ago(2))})
    store.seed(ISSUES, {"id": "far-away", **issue_doc(title="Road repair needed", location={"latitude": 28.6239, "longitude": 77.2090}, reported_at=days_ago(1))})
    store.seed(ISSUES, {"id": "resolved", **issue_doc(title="Pothole on main road", status="Resolved", location=NEW_DELHI_50M_NORTH)})
    store.seed(ISSUES, {"id": "too-old", **issue_doc(title="Pothole on main road", location=NEW_DELHI_50M_NORTH, reported_at=days_ago(9))})
    store.seed(ISSUES, {"id": "no-location", **issue_doc(title="Pothole on main road", location=None)})
    store.seed(ISSUES, {"id": "subject", **issue_doc(title="Deep pothole on main road", location=NEW_DELHI)})


@pytest.mark.asyncio
async def test_finds_single_new_delhi_duplicate(new_delhi_issues, detector, issue_repo):
    subject = await issue_repo.get_issue("subject")

    matches = await detector.find_duplicates(subject)

    assert len(matches) == 1
    match = matches[0]
    assert match.issue_id == "original"
    assert match.score == 0.77
    assert match.score >= 0.6
    assert match.distance_meters == 50
    assert match.category == "Roads"


@pytest.mark.asyncio
async def test_issue_without_location_has_no_duplicates(store, detector, issue_repo):
    store.seed(ISSUES, {"id": "other", **issue_doc(location=NEW_DELHI)})
    store.seed(ISSUES, {"id": "subject", **issue_doc(location=None)})

    assert await detector.find_duplicates(await issue_repo.get_issue("subject")) == []


@pytest.mark.asyncio
async def test_matches_are_ranked_best_first(store, detector, issue_repo):
    store.seed(ISSUES, {"id": "weaker", **issue_doc(title="Pothole on road", location=NEW_DELHI_50M_NORTH)})
    store.seed(ISSUES, {"id": "stronger", **issue_doc(title="Deep pothole on main road", location=NEW_DELHI)})
    store.seed(ISSUES, {"id": "subject", **issue_doc(title="Deep pothole on main road", location=NEW_DELHI)})

    matches = await detector.find_duplicates(await issue_repo.get_issue("subject"))

    assert [m.issue_id for m in matches] == ["stronger", "weaker"]
    assert matches[0].score == 1.0
    assert matches[0].distance_meters == 0


@pytest.mark.asyncio
async def test_flag_as_duplicate_writes_fields_and_comment(new_delhi_issues, store, detector, issue_repo):
    subject = await issue_repo.get_issue("subject")
    match = (await detector.find_duplicates(subject))[0]

    assert await detector.flag_as_duplicate(subject, match) is True

    doc = store.doc(ISSUES, "subject")
    assert doc["duplicate_of_id"] == "original"
    assert doc["duplicate_score"] == 0.77

    comments = store.docs(ISSUE_COMMENTS)
    assert len(comments) == 1
    assert comments[0]["text"] == "Possible duplicate detected (77% match). Original issue ID: original"
    assert comments[0]["author_email"] == "duplicate-detection@system"


@pytest.mark.asyncio
async def test_flagging_twice_writes_once(new_delhi_issues, store, detector, issue_repo):
    subject = await issue_repo.get_issue("subject")

    assert await detector.check_new_issue(subject) is not None
    writes = store.write_count()

    assert await detector.check_new_issue(subject) is not None
    assert store.write_count() == writes
    assert len(store.docs(ISSUE_COMMENTS)) == 1


@pytest.mark.asyncio
async def test_issue_cannot_duplicate_itself(store, detector, issue_repo):
    store.seed(ISSUES, {"id": "subject", **issue_doc(location=NEW_DELHI)})
    subject = await issue_repo.get_issue("subject")

    with pytest.raises(ValidationError):
        await detector.flag_as_duplicate(
            subject,
            DuplicateMatch(issue_id="subject", score=1.0, distance_meters=0)
        )
    assert store.write_count() == 0


@pytest.mark.asyncio
async def test_check_new_issue_without_matches(store, detector, issue_repo):
    store.seed(ISSUES, {"id": "subject", **issue_doc(location=NEW_DELHI)})

    assert await detector.check_new_issue(await issue_repo.get_issue("subject")) is None
    assert store.write_count() == 0


@pytest.mark.asyncio
async def test_clear_duplicate_flag(store, detector):
    store.seed(ISSUES, {"id": "subject", **issue_doc(location=NEW_DELHI, duplicate_of_id="original", duplicate_score=0.77)})

    await detector.clear_duplicate_flag("subject")

    doc = store.doc(ISSUES, "subject")
    assert doc["duplicate_of_id"] is None
    assert doc["duplicate_score"] is None


@pytest.mark.asyncio
async def test_clear_duplicate_flag_unknown_issue(detector):
    with pytest.raises(IssueNotFoundError):
        await detector.clear_duplicate_flag("missing")


@pytest.mark.asyncio
async def test_overflowing_bin_reported_twice_near_the_park(store, detector, issue_repo):
    store.seed(ISSUES, {"id": "bin-1", **issue_doc(title="Overflowing bin park area", category="Garbage", location=NEW_DELHI_50M_NORTH, reported_at=days_ago(1))})
    store.seed(ISSUES, {"id": "bin-2", **issue_doc(title="Overflowing bin near park", category="Garbage", location=NEW_DELHI)})

    matches = await detector.find_duplicates(await issue_repo.get_issue("bin-2"))

    assert [m.issue_id for m in matches] == ["bin-1"]
    assert matches[0].score >= 0.6
    assert matches[0].score == 0.73
    assert matches[0].distance_meters == 50
