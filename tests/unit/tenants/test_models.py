"""Unit tests for tenant model helpers."""

from datetime import timedelta

from tenantguard.core.database.base import utcnow
from tenantguard.modules.tenants.models import Tenant


def make_tenant(**kwargs) -> Tenant:
    return Tenant(name="Acme", slug="acme", **kwargs)


class TestTrial:
    """Tests for the trial window properties."""

    def test_future_end_is_in_trial(self):
        """A trial ending later is running."""
        tenant = make_tenant(trial_ends_at=utcnow() + timedelta(days=3))

        assert tenant.is_in_trial is True
        assert tenant.is_trial_expired is False

    def test_past_end_is_expired(self):
        """A trial that ended is expired."""
        tenant = make_tenant(trial_ends_at=utcnow() - timedelta(days=3))

        assert tenant.is_in_trial is False
        assert tenant.is_trial_expired is True

    def test_naive_end_is_read_as_utc(self):
        """Naive timestamps read back from SQLite compare as UTC."""
        tenant = make_tenant(trial_ends_at=(utcnow() + timedelta(hours=1)).replace(tzinfo=None))

        assert tenant.is_in_trial is True

    def test_no_trial(self):
        """Without a trial end, neither property holds."""
        tenant = make_tenant()

        assert tenant.is_in_trial is False
        assert tenant.is_trial_expired is False
