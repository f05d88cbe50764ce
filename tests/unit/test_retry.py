from actions_sentinel.utils.retry import compute_backoff, parse_retry_after


def test_backoff_grows_and_is_capped():
    assert 1.5 <= compute_backoff(1) <= 2.0
    assert 60.0 <= compute_backoff(50) <= 60.5


def test_parse_retry_after():
    assert parse_retry_after("3") == 3.0
    assert parse_retry_after("-1") == 0.0
    assert parse_retry_after(None) is None
    assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT") is None
