"""Tests for API key validation."""

import pytest

from linkscribe.utils.api_keys import APIKeyError, read_optional_api_key, validate_api_key


class TestValidateApiKey:
    """Test validate_api_key."""

    def test_valid_groq_key(self):
        """Test a well-formed Groq key passes and is stripped."""
        key = "gsk_" + "a" * 40
        assert validate_api_key(f"  {key}  ", "groq", "GROQ_API_KEY") == key

    def test_missing_key(self):
        """Test None raises with the variable name in the message."""
        with pytest.raises(APIKeyError, match="GROQ_API_KEY"):
            validate_api_key(None, "groq", "GROQ_API_KEY")

    def test_quoted_key(self):
        """Test quoted keys are rejected."""
        with pytest.raises(APIKeyError, match="should not be quoted"):
            validate_api_key('"gsk_' + "a" * 40 + '"', "groq", "GROQ_API_KEY")

    def test_control_characters(self):
        """Test embedded newlines are rejected."""
        with pytest.raises(APIKeyError, match="invalid characters"):
            validate_api_key("gsk_" + "a" * 20 + "\n" + "b" * 20, "groq", "GROQ_API_KEY")

    def test_too_short(self):
        """Test short keys are rejected."""
        with pytest.raises(APIKeyError, match="too short"):
            validate_api_key("gsk_short", "groq", "GROQ_API_KEY")

    def test_wrong_prefix(self):
        """Test prefix checks for providers with a known format."""
        with pytest.raises(APIKeyError, match="fc-"):
            validate_api_key("x" * 30, "firecrawl", "FIRECRAWL_API_KEY")

    def test_provider_without_pattern(self):
        """Test Apify tokens are only length-checked."""
        token = "apify_api_" + "z" * 30
        assert validate_api_key(token, "apify", "APIFY_API_TOKEN") == token


class TestReadOptionalApiKey:
    """Test read_optional_api_key."""

    def test_unset(self, monkeypatch):
        """Test unset variables yield None."""
        monkeypatch.delenv("FAL_KEY", raising=False)
        assert read_optional_api_key("FAL_KEY", "fal") is None

    def test_blank(self, monkeypatch):
        """Test blank variables yield None."""
        monkeypatch.setenv("FAL_KEY", "   ")
        assert read_optional_api_key("FAL_KEY", "fal") is None

    def test_invalid_raises(self, monkeypatch):
        """Test a set but malformed key raises."""
        monkeypatch.setenv("OPENAI_API_KEY", "not-a-key")
        with pytest.raises(APIKeyError):
            read_optional_api_key("OPENAI_API_KEY", "openai")
