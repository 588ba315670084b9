"""
Unit tests for per-request prompt and model resolution.
"""
import pytest

from services.inference.prompts import PROMPTS, resolve_model, resolve_prompt, resolve_settings


class TestResolvePrompt:
    @pytest.mark.parametrize("key", ["DEFAULT", "DETAILED", "BRIEF"])
    def test_exact_preset_key(self, key):
        assert resolve_prompt(key) == PROMPTS[key]

    @pytest.mark.parametrize("literal", ["brief", "detailed", "Brief", " BRIEF"])
    def test_near_miss_is_literal_prompt(self, literal):
        assert resolve_prompt(literal) == literal

    @pytest.mark.parametrize("prompt", [None, "", "   "])
    def test_missing_prompt_uses_default(self, prompt):
        assert resolve_prompt(prompt) == PROMPTS["DEFAULT"]


class TestResolveModel:
    def test_alias_and_passthrough(self):
        assert resolve_model("fast", "gpt-4o-mini") == "gpt-4o-mini"
        assert resolve_model("detailed", "gpt-4o-mini") == "gpt-4o"
        assert resolve_model("gpt-4.1", "gpt-4o-mini") == "gpt-4.1"
        assert resolve_model(None, "gpt-4o-mini") == "gpt-4o-mini"

    def test_settings_are_independent_per_call(self):
        first = resolve_settings("detailed", "BRIEF", "gpt-4o-mini")
        second = resolve_settings(None, None, "gpt-4o-mini")
        assert (first.model, first.prompt) == ("gpt-4o", PROMPTS["BRIEF"])
        assert (second.model, second.prompt) == ("gpt-4o-mini", PROMPTS["DEFAULT"])
