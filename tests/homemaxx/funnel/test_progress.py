"""Tests for homemaxx.funnel.progress: saved progress and the resume banner."""
import json

import pytest

from homemaxx.funnel.progress import ProgressStore, has_real_progress, resume_url

ADDRESS = '123 Main Street, Las Vegas, NV 89101'


class Clock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def store(fake_redis, clock):
    return ProgressStore(fake_redis, max_age_hours=24, clock=clock)


class TestHasRealProgress:
    """Address plus something beyond the first step."""

    @pytest.mark.parametrize('record', [
        {'address': ADDRESS, 'currentStep': 3},
        {'address': ADDRESS, 'lastStep': 2},
        {'address': ADDRESS, 'propertyDetails': {'beds': 3}},
        {'address': ADDRESS, 'contactInfo': {'email': 'a@b.co'}},
        {'address': ADDRESS, 'timeline': 'asap'},
    ])
    def test_real(self, record):
        assert has_real_progress(record)

    @pytest.mark.parametrize('record', [
        None,
        {},
        {'currentStep': 5},
        {'address': ADDRESS},
        {'address': ADDRESS, 'currentStep': 1},
    ])
    def test_not_real(self, record):
        assert not has_real_progress(record)


class TestResumeUrl:
    """Link back into the funnel."""

    def test_basic(self):
        url = resume_url({'address': ADDRESS, 'lastStep': 4})
        assert url.startswith('pages/get-offer.html?')
        assert 'step=4' in url
        assert url.endswith('&resume=true')
        assert 'address=123+Main+Street%2C+Las+Vegas%2C+NV+89101' in url

    def test_cash_offer_claimed(self):
        url = resume_url({'address': ADDRESS, 'currentStep': 2, 'cashOfferClaimed': True, 'cashOfferAmount': 7500})
        assert 'cashOffer=true&amount=7500&resume=true' in url

    def test_no_address(self):
        assert resume_url({}) == 'pages/address-entry.html'


class TestProgressStore:
    """Save/load with a 24h age limit."""

    def test_save_stamps_record(self, store, fake_redis, clock):
        store.save('s1', {'address': ADDRESS, 'currentStep': 3})
        saved = json.loads(fake_redis.get('progress:s1'))
        assert saved['timestamp'] == clock.now
        assert saved['lastStep'] == 3
        assert fake_redis.ttls['progress:s1'] == 24 * 3600

    def test_load_fresh(self, store, clock):
        store.save('s1', {'address': ADDRESS, 'currentStep': 3})
        clock.now += 23 * 3600
        assert store.load('s1')['address'] == ADDRESS

    def test_stale_record_is_cleared(self, store, fake_redis, clock):
        store.save('s1', {'address': ADDRESS, 'currentStep': 3})
        clock.now += 24 * 3600
        assert store.load('s1') is None
        assert fake_redis.get('progress:s1') is None

    def test_corrupt_record_is_cleared(self, store, fake_redis):
        fake_redis.set('progress:s1', '{not json')
        assert store.load('s1') is None
        assert fake_redis.get('progress:s1') is None

    def test_save_failure_is_swallowed(self, clock):
        class BrokenRedis:
            def setex(self, *args):
                raise ConnectionError('redis down')
        snapshot = ProgressStore(BrokenRedis(), clock=clock).save('s1', {'address': ADDRESS})
        assert snapshot['lastStep'] == 0


class TestCheckForSavedProgress:
    """Banner decision."""

    def test_banner_for_real_progress(self, store, fake_redis):
        store.save('s1', {'address': ADDRESS, 'currentStep': 4, 'totalSteps': 13})
        banner = store.check_for_saved_progress('s1')
        assert banner['address'] == ADDRESS
        assert banner['message'] == 'You were on step 5 of 13'
        assert 'step=4' in banner['resumeUrl']
        assert json.loads(fake_redis.get('progress_banner:s1')) == banner

    def test_address_only_record_is_auto_cleared(self, store, fake_redis):
        store.save('s1', {'address': ADDRESS})
        assert store.check_for_saved_progress('s1') is None
        assert fake_redis.get('progress:s1') is None

    def test_address_with_step_one_is_auto_cleared(self, store, fake_redis):
        store.save('s1', {'address': ADDRESS, 'currentStep': 1})
        assert store.check_for_saved_progress('s1') is None
        assert fake_redis.get('progress:s1') is None

    def test_repeated_checks_keep_one_banner(self, store, fake_redis):
        store.save('s1', {'address': ADDRESS, 'currentStep': 4})
        first = store.check_for_saved_progress('s1')
        second = store.check_for_saved_progress('s1')
        assert first == second
        assert [k for k in fake_redis.store if k.startswith('progress_banner:')] == ['progress_banner:s1']

    def test_default_total_steps(self, store):
        store.save('s1', {'address': ADDRESS, 'timeline': 'asap'})
        assert store.check_for_saved_progress('s1')['message'] == 'You were on step 1 of 8'

    def test_dismiss_clears_everything(self, store, fake_redis):
        store.save('s1', {'address': ADDRESS, 'currentStep': 4})
        store.check_for_saved_progress('s1')
        store.dismiss('s1')
        assert fake_redis.get('progress:s1') is None
        assert fake_redis.get('progress_banner:s1') is None
        assert store.check_for_saved_progress('s1') is None
