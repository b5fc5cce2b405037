"""Tests for the third-party safety scans."""

import httpx
import pytest
import pytest_asyncio
import respx

from autopilot.filters.safety import SafetyScanner, honeypot_is_safe, rugcheck_is_safe

RUGCHECK = "https://api.rugcheck.xyz/v1"
HONEYPOT = "https://api.honeypot.is/v2"
MINT = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"
RUGCHECK_URL = f"{RUGCHECK}/tokens/{MINT}/scan"
HONEYPOT_URL = f"{HONEYPOT}/IsHoneypot"


@pytest_asyncio.fixture
async def scanner():
    async with httpx.AsyncClient() as session:
        yield SafetyScanner(
            session=session,
            rugcheck_base=RUGCHECK,
            honeypot_base=HONEYPOT,
            max_risk_score=50,
            timeout=1.0,
        )


def mock_scans(rug_response, honeypot_response):
    rug_route = respx.get(RUGCHECK_URL)
    hp_route = respx.get(HONEYPOT_URL, params={"address": MINT})
    for route, response in ((rug_route, rug_response), (hp_route, honeypot_response)):
        if isinstance(response, Exception):
            route.mock(side_effect=response)
        else:
            route.mock(return_value=response)
    return rug_route, hp_route


class TestVerdicts:
    """Test the pure response judgements."""

    def test_rugcheck_safe_below_threshold(self):
        assert rugcheck_is_safe({"riskScore": 49.9, "isHoneypot": False}, 50)

    def test_rugcheck_unsafe_at_threshold(self):
        assert not rugcheck_is_safe({"riskScore": 50}, 50)

    def test_rugcheck_flagged_honeypot(self):
        assert not rugcheck_is_safe({"riskScore": 1, "isHoneypot": True}, 50)

    def test_rugcheck_missing_score_raises(self):
        """Test that a response without a numeric score is an error."""
        with pytest.raises(ValueError):
            rugcheck_is_safe({"isHoneypot": False}, 50)
        with pytest.raises(ValueError):
            rugcheck_is_safe({"riskScore": "low"}, 50)

    def test_honeypot_explicit_false_only(self):
        assert honeypot_is_safe({"isHoneypot": False})
        assert not honeypot_is_safe({"isHoneypot": True})
        assert not honeypot_is_safe({})

    def test_honeypot_nested_result(self):
        assert honeypot_is_safe({"honeypotResult": {"isHoneypot": False}})
        assert not honeypot_is_safe({"honeypotResult": {"isHoneypot": True}})


class TestSafetyScanner:
    """Test the concurrent, fail-closed safety check."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_both_safe(self, scanner):
        """Test that a token passing both scans is safe."""
        rug_route, hp_route = mock_scans(
            httpx.Response(200, json={"riskScore": 10, "isHoneypot": False}),
            httpx.Response(200, json={"isHoneypot": False}),
        )

        assert await scanner.verify_safety(MINT) is True
        assert rug_route.called
        assert hp_route.called

    @pytest.mark.asyncio
    @respx.mock
    async def test_honeypot_flag_fails(self, scanner):
        mock_scans(
            httpx.Response(200, json={"riskScore": 10, "isHoneypot": False}),
            httpx.Response(200, json={"isHoneypot": True}),
        )

        assert await scanner.verify_safety(MINT) is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_high_risk_score_fails(self, scanner):
        mock_scans(
            httpx.Response(200, json={"riskScore": 80, "isHoneypot": False}),
            httpx.Response(200, json={"isHoneypot": False}),
        )

        assert await scanner.verify_safety(MINT) is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_scan_error_fails_closed(self, scanner):
        """Test that a failing scan service means unsafe, not an exception."""
        mock_scans(
            httpx.Response(500),
            httpx.Response(200, json={"isHoneypot": False}),
        )

        assert await scanner.verify_safety(MINT) is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout_fails_closed(self, scanner):
        mock_scans(
            httpx.Response(200, json={"riskScore": 10, "isHoneypot": False}),
            httpx.ReadTimeout("timed out"),
        )

        assert await scanner.verify_safety(MINT) is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_malformed_response_fails_closed(self, scanner):
        mock_scans(
            httpx.Response(200, json={"score": "unknown"}),
            httpx.Response(200, json={"isHoneypot": False}),
        )

        assert await scanner.verify_safety(MINT) is False
