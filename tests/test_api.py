"""Tests for the public API endpoints."""

from typing import Any

from fastapi.testclient import TestClient

from before_after.api.cards import is_correct_guess
from before_after.database.operations import DatabaseOperations


class TestHealthEndpoints:
    """Tests for health check and metrics endpoints."""

    def test_health_check(self, test_client: TestClient) -> None:
        response = test_client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"
        assert data["version"] == "1.0.0"
        assert "timestamp" in data

    def test_metrics(
        self,
        test_client: TestClient,
        app_db_ops: DatabaseOperations,
        card_values: dict[str, Any],
    ) -> None:
        app_db_ops.create_card(**card_values)

        response = test_client.get("/metrics")

        assert response.status_code == 200
        data = response.json()
        assert data["total_cards"] == 1
        assert data["total_loss_gifs"] == 0
        assert data["cards_by_category"] == {"movie": 1}
        assert data["uploads_total"] == 0
        assert data["uploads_failed"] == 0
        # The in-memory backend does not report usage
        assert data["storage"] == {}

    def test_security_headers_present(self, test_client: TestClient) -> None:
        response = test_client.get("/health")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"

    def test_cors_preflight_allows_api_key(self, test_client: TestClient) -> None:
        response = test_client.options(
            "/api/admin/cards",
            headers={
                "Origin": "https://game.example.test",
                "Access-Control-Request-Method": "PUT",
                "Access-Control-Request-Headers": "X-API-Key",
            },
        )

        assert response.status_code == 200
        assert "PUT" in response.headers["access-control-allow-methods"]
        assert "x-api-key" in response.headers["access-control-allow-headers"].lower()


class TestCardEndpoints:
    """Tests for /api/cards."""

    def test_next_card_empty(self, test_client: TestClient) -> None:
        response = test_client.get("/api/cards/next")
        assert response.status_code == 404
        assert response.json() == {"detail": "No cards found in database"}

    def test_next_card(
        self,
        test_client: TestClient,
        app_db_ops: DatabaseOperations,
        card_values: dict[str, Any],
    ) -> None:
        card = app_db_ops.create_card(**card_values)

        response = test_client.get("/api/cards/next")

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == card.id
        assert data["title"] == "The Matrix"
        assert data["year"] == 1999
        assert data["month"] == 3
        assert data["imageUrl"] == card_values["image_url"]
        assert data["thumbnailUrl"] == card_values["thumbnail_url"]
        assert data["sourceUrl"] == card_values["source_url"]
        assert data["category"] == "movie"
        assert "createdAt" in data
        assert "updatedAt" in data

    def test_all_cards(
        self,
        test_client: TestClient,
        app_db_ops: DatabaseOperations,
        card_values: dict[str, Any],
    ) -> None:
        assert test_client.get("/api/cards/all").status_code == 404

        app_db_ops.create_card(**card_values)
        app_db_ops.create_card(**{**card_values, "title": "Heat", "year": 1995})

        response = test_client.get("/api/cards/all")

        assert response.status_code == 200
        assert [c["title"] for c in response.json()] == ["The Matrix", "Heat"]


class TestGuessEndpoint:
    """Tests for POST /api/cards/guess."""

    def test_is_correct_guess(self) -> None:
        assert is_correct_guess(1990, 2000, "after")
        assert not is_correct_guess(1990, 2000, "before")
        assert is_correct_guess(2000, 1990, "before")
        assert not is_correct_guess(2000, 1990, "after")
        # Equal years only count as "before"
        assert is_correct_guess(1999, 1999, "before")
        assert not is_correct_guess(1999, 1999, "after")

    def test_correct_guess_returns_next_card(
        self,
        test_client: TestClient,
        app_db_ops: DatabaseOperations,
        card_values: dict[str, Any],
    ) -> None:
        card = app_db_ops.create_card(**card_values)

        response = test_client.post(
            "/api/cards/guess",
            json={"previousYear": 1990, "currentYear": 1999, "guess": "after"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["correct"] is True
        assert data["nextCard"]["id"] == card.id

    def test_wrong_guess(
        self,
        test_client: TestClient,
        app_db_ops: DatabaseOperations,
        card_values: dict[str, Any],
    ) -> None:
        app_db_ops.create_card(**card_values)

        response = test_client.post(
            "/api/cards/guess",
            json={"previousYear": 1990, "currentYear": 1999, "guess": "before"},
        )

        assert response.status_code == 200
        assert response.json() == {"correct": False, "nextCard": None}

    def test_correct_guess_without_cards(self, test_client: TestClient) -> None:
        response = test_client.post(
            "/api/cards/guess",
            json={"previousYear": 2000, "currentYear": 1990, "guess": "before"},
        )

        assert response.status_code == 200
        assert response.json() == {"correct": True, "nextCard": None}

    def test_missing_fields(self, test_client: TestClient) -> None:
        for body in (
            {"currentYear": 1999, "guess": "after"},
            {"previousYear": 1990, "guess": "after"},
            {"previousYear": 1990, "currentYear": 1999},
            {"previousYear": 1990, "currentYear": 1999, "guess": ""},
        ):
            response = test_client.post("/api/cards/guess", json=body)
            assert response.status_code == 400
            assert response.json() == {"detail": "Missing required fields"}

    def test_year_zero_is_not_missing(self, test_client: TestClient) -> None:
        response = test_client.post(
            "/api/cards/guess",
            json={"previousYear": 0, "currentYear": 5, "guess": "before"},
        )

        assert response.status_code == 200
        assert response.json()["correct"] is False

    def test_invalid_guess(self, test_client: TestClient) -> None:
        response = test_client.post(
            "/api/cards/guess",
            json={"previousYear": 1990, "currentYear": 1999, "guess": "later"},
        )

        assert response.status_code == 400
        assert response.json() == {"detail": "Guess must be 'before' or 'after'"}


class TestLossGifEndpoint:
    """Tests for GET /api/loss-gifs/current."""

    def seed(self, db_ops: DatabaseOperations) -> None:
        for category, threshold in (("Terrible", 2), ("Frustrated", 5), ("Decent", 8)):
            db_ops.create_loss_gif(
                category=category,
                streak_threshold=threshold,
                image_url=f"https://cdn.example.test/loss-gifs/{category}.gif",
                thumbnail_url=f"https://cdn.example.test/loss-gifs-thumbnails/{category}.webp",
            )

    def test_lowest_qualifying_threshold(
        self, test_client: TestClient, app_db_ops: DatabaseOperations
    ) -> None:
        self.seed(app_db_ops)

        response = test_client.get("/api/loss-gifs/current", params={"score": 3})

        assert response.status_code == 200
        data = response.json()
        assert data["category"] == "Frustrated"
        assert data["streakThreshold"] == 5
        assert data["imageUrl"].endswith("Frustrated.gif")
        assert data["thumbnailUrl"].endswith("Frustrated.webp")

    def test_score_zero(
        self, test_client: TestClient, app_db_ops: DatabaseOperations
    ) -> None:
        self.seed(app_db_ops)

        response = test_client.get("/api/loss-gifs/current?score=0")

        assert response.json()["category"] == "Terrible"

    def test_no_gif_above_score(
        self, test_client: TestClient, app_db_ops: DatabaseOperations
    ) -> None:
        self.seed(app_db_ops)

        response = test_client.get("/api/loss-gifs/current?score=8")

        assert response.status_code == 404
        assert response.json() == {"detail": "No loss GIF found for score"}

    def test_missing_score(self, test_client: TestClient) -> None:
        response = test_client.get("/api/loss-gifs/current")

        assert response.status_code == 400
        assert response.json() == {"detail": "Score parameter required"}

    def test_invalid_score(self, test_client: TestClient) -> None:
        for score in ("abc", "-1", "", "1.5"):
            response = test_client.get(
                "/api/loss-gifs/current", params={"score": score}
            )
            assert response.status_code == 400
            assert response.json() == {"detail": "Valid score parameter required"}
