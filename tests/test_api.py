"""
Tests for FastAPI endpoints.
"""

from unittest.mock import AsyncMock, Mock, patch

import httpx

import src.speech
from src.speech import EMPTY_AUDIO_URI, SpeechSynthesizer


class TestAPIEndpoints:
    """Test FastAPI REST API endpoints."""

    def test_root_endpoint(self, test_client):
        response = test_client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert "Voice Link Assistant API" in data["message"]
        assert "version" in data

    def test_health_endpoint(self, test_client):
        response = test_client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["collaborator_mode"] == "rules"
        assert "environment" in data
        assert any(cb["name"] == "TtsCircuitBreaker" for cb in data["circuit_breakers"])

    def test_ready_endpoint(self, test_client):
        assert test_client.get("/ready").json() == {"status": "ready"}

    def test_metrics_endpoint(self, test_client):
        response = test_client.get("/metrics")
        assert response.status_code == 200
        data = response.json()
        assert data["topic_switch_policy"] == "continue"
        assert data["collaborator_mode"] == "rules"
        assert "circuit_breakers" in data
        assert "environment" in data


class TestInteractiveAgent:
    """Test the conversation turn endpoint."""

    def test_day_off_request_starts(self, test_client):
        response = test_client.post(
            "/ai/interactive-agent", json={"userInput": "I want to take a vacation"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["recognizedIntent"] == "REQUEST_DAY_OFF"
        assert "How many days" in data["agentResponse"]
        assert data["dayOffRequestDetails"]["isComplete"] is False
        assert data["stage"] == "COLLECTING_DAYS"

    def test_previous_details_are_continued(self, test_client):
        response = test_client.post(
            "/ai/interactive-agent",
            json={
                "userInput": "starting next Monday",
                "previousDayOffRequestDetails": {
                    "days": "3",
                    "isComplete": False,
                    "responseText": "Got it, for 3 days. And when would you like this leave to start?",
                },
            },
        )

        data = response.json()
        assert data["recognizedIntent"] == "REQUEST_DAY_OFF"
        assert data["dayOffRequestDetails"]["days"] == "3"
        assert data["dayOffRequestDetails"]["startDate"] == "next Monday"
        assert data["stage"] == "COLLECTING_REASON"

    def test_request_completes(self, test_client):
        response = test_client.post(
            "/ai/interactive-agent",
            json={
                "userInput": "for a family trip",
                "previousDayOffRequestDetails": {
                    "days": "3",
                    "startDate": "next Monday",
                    "isComplete": False,
                    "responseText": "What's the reason for your time off?",
                },
            },
        )

        data = response.json()
        assert data["dayOffRequestDetails"]["isComplete"] is True
        assert data["dayOffRequestDetails"]["reason"] == "a family trip"
        assert data["stage"] == "COMPLETE"

    def test_cancellation_marks_stage_abandoned(self, test_client):
        """Clients stop resending details on ABANDONED even though isComplete is false."""
        cancelled = test_client.post(
            "/ai/interactive-agent",
            json={
                "userInput": "never mind",
                "previousDayOffRequestDetails": {"days": "3", "isComplete": False},
            },
        ).json()

        assert cancelled["stage"] == "ABANDONED"
        assert cancelled["dayOffRequestDetails"]["isComplete"] is False
        assert "days" not in cancelled["dayOffRequestDetails"]

        follow_up = test_client.post("/ai/interactive-agent", json={"userInput": "hello"}).json()

        assert follow_up["recognizedIntent"] == "GENERAL_CONVERSATION"

    def test_route_documents_stage_contract(self, test_client):
        description = test_client.get("/openapi.json").json()["paths"][
            "/ai/interactive-agent"
        ]["post"]["description"]

        assert "ABANDONED" in description
        assert "not from" in description

    def test_general_conversation_has_no_details(self, test_client):
        data = test_client.post("/ai/interactive-agent", json={"userInput": "hello"}).json()

        assert data["recognizedIntent"] == "GENERAL_CONVERSATION"
        assert "dayOffRequestDetails" not in data

    def test_blank_input(self, test_client):
        response = test_client.post("/ai/interactive-agent", json={"userInput": "   "})

        assert response.status_code == 200
        assert response.json() == {"agentResponse": "Please say something!"}

    def test_missing_user_input_rejected(self, test_client):
        response = test_client.post("/ai/interactive-agent", json={})
        assert response.status_code == 422

    def test_controller_error_returns_apology(self, test_client):
        failing = Mock(handle_turn=AsyncMock(side_effect=RuntimeError("boom")))

        with patch("src.main.get_controller", return_value=failing):
            response = test_client.post("/ai/interactive-agent", json={"userInput": "hello"})

        assert response.status_code == 200
        assert response.json() == {
            "agentResponse": "Sorry, I encountered an error trying to respond."
        }


class TestTextToSpeech:
    def test_audio_returned(self, test_client, monkeypatch):
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"mp3"))
        )
        monkeypatch.setattr(
            src.speech,
            "speech_synthesizer",
            SpeechSynthesizer(api_key="key", voice_id="voice", client=client),
        )

        data = test_client.post("/ai/text-to-speech", json={"text": "Hello"}).json()

        assert data["success"] is True
        assert data["audioUrl"].startswith("data:audio/mpeg;base64,")
        assert data["audioUrl"] != EMPTY_AUDIO_URI

    def test_unconfigured_synthesis(self, test_client, monkeypatch):
        monkeypatch.setattr(
            src.speech, "speech_synthesizer", SpeechSynthesizer(api_key=None, voice_id=None)
        )

        data = test_client.post("/ai/text-to-speech", json={"text": "Hello"}).json()

        assert data == {"audioUrl": EMPTY_AUDIO_URI, "success": False}


class TestSuggestActions:
    def test_suggestions(self, test_client):
        data = test_client.post(
            "/ai/suggest-actions", json={"transcription": "I'd like to refer a friend"}
        ).json()

        assert "Make a referral" in data["suggestedActions"]

    def test_blank_transcription(self, test_client):
        data = test_client.post("/ai/suggest-actions", json={"transcription": " "}).json()
        assert data == {"suggestedActions": []}

    def test_suggester_error(self, test_client, controller, monkeypatch):
        monkeypatch.setattr(
            controller.collaborators,
            "suggester",
            Mock(suggest=AsyncMock(side_effect=RuntimeError("provider down"))),
        )

        data = test_client.post("/ai/suggest-actions", json={"transcription": "hello"}).json()

        assert data == {"suggestedActions": ["Error: Could not fetch suggestions."]}
