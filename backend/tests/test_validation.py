"""Input hardening tests.

SQLAlchemy parameterizes every query, so hostile input can never change a
statement. These tests cover the sanitization layer in front of it: search
terms, LIKE patterns, required text fields, invite code formats and log
output.
"""

import asyncio
from uuid import uuid4

import pytest

SQL_INJECTION_PAYLOADS = [
    "'; DROP TABLE groups; --",
    "1' OR '1'='1",
    "' UNION SELECT * FROM group_members --",
    "1'; SELECT pg_sleep(5) --",
    "1'; UPDATE groups SET owner_id = 'attacker' WHERE '1'='1'; --",
    "1'/**/OR/**/1=1--",
    "$$; DROP TABLE groups; $$",
]


class TestSearchSanitization:
    """Tests for free-text search input."""

    @pytest.mark.parametrize("payload", SQL_INJECTION_PAYLOADS)
    def test_statement_separators_removed(self, payload):
        """Semicolons and comment markers never survive sanitization."""
        from groups_api.utils.validation import sanitize_search

        result = sanitize_search(payload)

        if result is not None:
            assert ";" not in result
            assert "--" not in result

    def test_length_is_capped(self):
        from groups_api.utils.validation import MAX_SEARCH_LENGTH, sanitize_search

        assert len(sanitize_search("a" * 1000)) == MAX_SEARCH_LENGTH

    @pytest.mark.parametrize("value", [None, "", "   ", ";;", "--"])
    def test_empty_input_becomes_none(self, value):
        from groups_api.utils.validation import sanitize_search

        assert sanitize_search(value) is None

    def test_normal_search_preserved(self):
        from groups_api.utils.validation import sanitize_search

        assert sanitize_search("  Mining Corp  ") == "Mining Corp"


class TestLikeEscaping:
    """Tests for LIKE wildcard escaping."""

    @pytest.mark.parametrize(
        "raw,escaped",
        [
            ("100%", "100\\%"),
            ("a_b", "a\\_b"),
            ("back\\slash", "back\\\\slash"),
            ("plain", "plain"),
        ],
    )
    def test_wildcards_escaped(self, raw, escaped):
        from groups_api.utils.validation import escape_like_wildcards

        assert escape_like_wildcards(raw) == escaped

    @pytest.mark.asyncio
    async def test_wildcard_search_matches_literally(self, make_group, group_service):
        """A search for '%' only matches names that contain a percent sign."""
        from groups_api.models.dto.group import GroupListFilters

        await make_group("owner-1", name="Alpha")
        await make_group("owner-1", name="100% Beta")

        results = await group_service.list_groups(GroupListFilters(search="%"), "viewer")

        assert [g.name for g in results] == ["100% Beta"]

    @pytest.mark.asyncio
    async def test_injection_payload_search_returns_nothing(self, make_group, group_service):
        from groups_api.models.dto.group import GroupListFilters

        await make_group("owner-1", name="Alpha")

        results = await group_service.list_groups(
            GroupListFilters(search="' OR '1'='1"), "viewer"
        )

        assert results == []


class TestRequiredText:
    """Tests for required text fields."""

    def test_value_is_stripped(self):
        from groups_api.utils.validation import require_text

        assert require_text("  Fleet  ", "name") == "Fleet"

    @pytest.mark.parametrize("value", [None, "", "    "])
    def test_blank_rejected(self, value):
        from groups_api.exceptions import ValidationError
        from groups_api.utils.validation import require_text

        with pytest.raises(ValidationError, match="name is required"):
            require_text(value, "name")

    def test_too_long_rejected(self):
        from groups_api.exceptions import ValidationError
        from groups_api.utils.validation import require_text

        with pytest.raises(ValidationError, match="at most 5"):
            require_text("abcdef", "name", max_length=5)


class TestInviteCodeFormat:
    """Tests for invite code generation and format checks."""

    def test_generated_codes_are_valid(self):
        from groups_api.utils.codes import INVITE_CODE_LENGTH, generate_invite_code, is_valid_invite_code_format

        for _ in range(50):
            code = generate_invite_code()
            assert len(code) == INVITE_CODE_LENGTH
            assert code == code.upper()
            assert is_valid_invite_code_format(code)

    @pytest.mark.parametrize("code", ["abcd1234", " ABCD1234 ", "ABCD-EFGH-JKLM-NPQR"])
    def test_accepted_formats(self, code):
        from groups_api.utils.codes import is_valid_invite_code_format

        assert is_valid_invite_code_format(code)

    @pytest.mark.parametrize(
        "code",
        ["", "ABC", "ABCD12345", "ABCD-EFGH", "ABCD-EFGH-JKLM-NP01", "'; DROP TABLE x; --"],
    )
    def test_rejected_formats(self, code):
        from groups_api.utils.codes import is_valid_invite_code_format

        assert not is_valid_invite_code_format(code)


class TestSecureLogging:
    """Tests for log output masking."""

    def test_mask_id_keeps_prefix(self):
        from groups_api.utils.secure_logging import mask_id

        assert mask_id("1234567890abcdef") == "12345678..."
        assert mask_id(None) == "<none>"

    def test_uuid_in_exception_masked(self):
        from groups_api.utils.secure_logging import sanitize_exception_message

        user_id = uuid4()
        message = sanitize_exception_message(RuntimeError(f"user {user_id} failed"))

        assert str(user_id) not in message
        assert str(user_id)[:8] in message

    def test_long_token_removed(self):
        from groups_api.utils.secure_logging import sanitize_exception_message

        message = sanitize_exception_message(RuntimeError("token " + "x" * 40))

        assert "[TOKEN]" in message


class TestGatherBounded:
    """Tests for bounded fan-out."""

    @pytest.mark.asyncio
    async def test_results_keep_input_order(self):
        from groups_api.utils.concurrency import gather_bounded

        async def double(n: int) -> int:
            await asyncio.sleep(0.001 * (5 - n))
            return n * 2

        assert await gather_bounded(range(5), double, limit=2) == [0, 2, 4, 6, 8]

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self):
        from groups_api.utils.concurrency import gather_bounded

        in_flight = 0
        peak = 0

        async def track(_: int) -> None:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.001)
            in_flight -= 1

        await gather_bounded(range(20), track, limit=3)

        assert peak <= 3

    @pytest.mark.asyncio
    async def test_first_error_propagates(self):
        from groups_api.utils.concurrency import gather_bounded

        async def fail_on_three(n: int) -> int:
            if n == 3:
                raise ValueError("boom")
            return n

        with pytest.raises(ValueError, match="boom"):
            await gather_bounded(range(5), fail_on_three)
