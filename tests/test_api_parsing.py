import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.api.parsing import parsing
from app.api.parsing.parsing import close_parsing_service, get_parsing_service
from app.schemas.recipe import NewIngredient, ParsedRecipeData, ResolvedIngredient, ResolvedStep
from app.services.parsers.errors import PageFetchError, RecipeParseError


class StubParsingService:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.requests = []

    async def parse_recipe(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


def use_service(service):
    app.dependency_overrides[get_parsing_service] = lambda: service
    return service


class TestParseEndpoint:

    def test_success_uses_camel_case(self, client):
        service = use_service(StubParsingService(result=ParsedRecipeData(
            name="番茄炒蛋",
            ingredients=[ResolvedIngredient(name="盐", count=None, unit=None, matched_ingredient_id="ing-salt")],
            steps=[ResolvedStep(text="炒", image="/media/images/a.jpg", image_id="a")],
            newly_created_ingredients=[NewIngredient(name="神秘食材", category="其他")],
        )))

        response = client.post("/api/recipes/parse", json={"url": "https://recipes.example.com/1"})

        assert response.status_code == 200
        body = response.json()
        assert body["ingredients"][0]["matchedIngredientId"] == "ing-salt"
        assert body["ingredients"][0]["count"] is None
        assert body["steps"][0]["imageId"] == "a"
        assert body["newlyCreatedIngredients"] == [{"name": "神秘食材", "category": "其他"}]
        assert service.requests[0].url == "https://recipes.example.com/1"

    @pytest.mark.parametrize("error,error_type", [
        (PageFetchError("Could not fetch the recipe page"), "page_fetch"),
        (RecipeParseError("Could not parse recipe content"), "unparseable_recipe"),
    ])
    def test_extraction_errors_map_to_400(self, client, error, error_type):
        use_service(StubParsingService(error=error))

        response = client.post("/api/recipes/parse", json={"images": ["AAAA"]})

        assert response.status_code == 400
        assert response.json()["detail"] == {"error_type": error_type, "message": error.message}

    @pytest.mark.parametrize("payload", [{}, {"url": "https://a.example.com", "images": ["AAAA"]}])
    def test_invalid_request(self, client, payload):
        use_service(StubParsingService())

        response = client.post("/api/recipes/parse", json=payload)

        assert response.status_code == 422


class TestHealth:

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}

    def test_health_with_lifespan(self):
        with TestClient(app) as client:
            assert client.get("/health").json() == {"status": "healthy"}


class TestServiceLifetime:

    @pytest.mark.asyncio
    async def test_service_is_built_once_and_closed_on_shutdown(self):
        first = get_parsing_service()

        assert get_parsing_service() is first

        await close_parsing_service()

        assert parsing._parsing_service is None
        assert get_parsing_service() is not first
        await close_parsing_service()

    def test_shutdown_closes_the_shared_service(self, monkeypatch):
        closed = []

        class ClosingService(StubParsingService):
            async def close(self):
                closed.append(self)

        service = ClosingService()
        monkeypatch.setattr(parsing, "_parsing_service", service)

        with TestClient(app):
            pass

        assert closed == [service]
        assert parsing._parsing_service is None
