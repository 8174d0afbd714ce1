import pytest

from app.services.ratings_math import online_mean


@pytest.mark.unit
class TestOnlineMean:
    def test_folds_new_rating_into_existing_mean(self):
        assert online_mean(4.5, 9, 4) == pytest.approx(4.45)

    def test_first_rating_is_the_mean(self):
        assert online_mean(0.0, 0, 5) == 5.0

    def test_matches_batch_mean(self):
        ratings = [5, 3, 4, 4, 1, 5]
        mean, count = 0.0, 0
        for rating in ratings:
            mean = online_mean(mean, count, rating)
            count += 1

        assert mean == pytest.approx(sum(ratings) / len(ratings))
