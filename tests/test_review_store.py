import pytest

from amenities.models import TriState
from amenities.reviews import review_form
from data_sources import review_store
from data_sources.error_handling import ReviewStoreError


class DummyResp:
    def __init__(self, status=200, payload=None):
        self.status = status
        self._payload = payload

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def json(self):
        return self._payload


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.requests = []

    def get(self, url, **kwargs):
        self.requests.append(("GET", url, None))
        return self.response

    def post(self, url, data=None, **kwargs):
        self.requests.append(("POST", url, data))
        return self.response


@pytest.fixture
def use_session(monkeypatch):
    monkeypatch.setattr(review_store, "REVIEW_API_BASE_URL", "https://reviews.test/")

    def install(session):
        async def fake_get_session():
            return session
        monkeypatch.setattr(review_store, "get_session", fake_get_session)
        return session
    return install


@pytest.mark.asyncio
async def test_get_reviews(use_session):
    session = use_session(FakeSession(DummyResp(200, {
        "reviews": [
            {"id": 1, "amenityId": 1001, "cleanlinessRating": 4, "hasSoap": True},
            {"id": 2, "amenityId": 1001, "cleanlinessRating": 2},
        ],
        "averageRating": 3.0,
        "totalReviews": 2,
    })))

    reviews = await review_store.get_reviews(1001)

    assert session.requests == [("GET", "https://reviews.test/api/amenities/1001/reviews", None)]
    assert [r.id for r in reviews] == [1, 2]
    assert reviews[0].has_soap is TriState.TRUE
    assert reviews[1].has_soap is TriState.UNKNOWN


@pytest.mark.asyncio
async def test_get_reviews_not_found(use_session):
    session = use_session(FakeSession(DummyResp(404, {"message": "Invalid amenity ID"})))

    with pytest.raises(ReviewStoreError):
        await review_store.get_reviews("abc")
    assert len(session.requests) == 1


@pytest.mark.asyncio
async def test_post_review(use_session):
    form = review_form(1001, 5, has_toilet_paper=TriState.TRUE)
    session = use_session(FakeSession(DummyResp(200, {
        "id": 77, "amenityId": 1001, "userNickname": "Anonymous",
        "cleanlinessRating": 5, "hasToiletPaper": True,
    })))

    review = await review_store.post_review(form)

    assert session.requests == [("POST", "https://reviews.test/api/reviews", form)]
    assert review.id == 77
    assert review.has_toilet_paper is TriState.TRUE


@pytest.mark.asyncio
async def test_post_review_rejected(use_session):
    session = use_session(FakeSession(DummyResp(400, {"message": "bad"})))

    with pytest.raises(ReviewStoreError):
        await review_store.post_review(review_form(1001, 3))
    assert len(session.requests) == 1
