"""Unit tests for slug utilities."""

from tenantguard.core.utils.text import generate_slug, suffixed_slug


class TestGenerateSlug:
    """Tests for generate_slug."""

    def test_basic(self):
        """Names become lowercase hyphenated slugs."""
        assert generate_slug("Acme Corp") == "acme-corp"
        assert generate_slug("Hello! World_2024") == "hello-world-2024"

    def test_trims_hyphens(self):
        """No leading, trailing or repeated hyphens survive."""
        assert generate_slug("  --Acme -- Corp--  ") == "acme-corp"

    def test_nothing_usable(self):
        """A name without usable characters yields an empty slug."""
        assert generate_slug("!!!") == ""

    def test_max_length(self):
        """Slugs fit a DNS label."""
        assert len(generate_slug("a" * 100)) == 63


class TestSuffixedSlug:
    """Tests for suffixed_slug."""

    def test_appends_suffix(self):
        """The suffix is appended with a hyphen."""
        assert suffixed_slug("acme-corp", 2) == "acme-corp-2"

    def test_keeps_length(self):
        """The base is trimmed so the suffix still fits."""
        slug = suffixed_slug("a" * 63, 12)

        assert len(slug) == 63
        assert slug.endswith("-12")
