import json

import pytest

from app.core.constants import INGREDIENT_CATEGORIES, FALLBACK_CATEGORY
from app.services.parsers.base_parser import ExtractedIngredient
from app.services.parsers.errors import InferenceServiceError, RecipeParseError
from app.services.parsers.llm_parser import (
    RecipeLLMParser, coerce_count, extract_json_object, heuristic_ingredient,
    split_ingredient_line, PARSE_FAILURE_MESSAGE, SERVICE_FAILURE_MESSAGE,
)
from tests.conftest import FakeInferenceClient

RECIPE_REPLY = """好的，这是解析结果：
```json
{
  "name": "番茄炒蛋",
  "ingredients": [
    {"name": "番茄", "count": 2, "unit": "piece"},
    {"name": "盐", "count": null, "unit": null}
  ],
  "steps": [{"text": "切番茄"}, "炒鸡蛋", {"text": "  "}]
}
```
"""


class TestExtractJsonObject:

    def test_object_inside_markdown_fence_and_prose(self):
        assert extract_json_object(RECIPE_REPLY)["name"] == "番茄炒蛋"

    def test_braces_inside_strings_do_not_count(self):
        data = extract_json_object('prefix {"text": "用 } 和 { 装饰", "n": 1} suffix {"other": 2}')
        assert data == {"text": "用 } 和 { 装饰", "n": 1}

    @pytest.mark.parametrize("reply", ["", "no json here", '{"unbalanced": [1, 2'])
    def test_no_balanced_object_raises(self, reply):
        with pytest.raises(ValueError):
            extract_json_object(reply)


class TestCoerceCount:

    @pytest.mark.parametrize("value,expected", [
        (2, 2.0), (0.5, 0.5), ("3", 3.0), ("1.5", 1.5), ("1/2", 0.5), ("1 1/2", 1.5),
        (None, None), ("适量", None), ("", None), (True, None), ("1/0", None),
    ])
    def test_values(self, value, expected):
        assert coerce_count(value) == expected


class TestHeuristics:

    @pytest.mark.parametrize("line,expected", [
        ("番茄 2个", ("番茄", "2个")),
        ("五花肉500克", ("五花肉", "500克")),
        ("盐 适量", ("盐", "适量")),
        ("盐少许", ("盐", "少许")),
        ("葱花", ("葱花", None)),
    ])
    def test_split_ingredient_line(self, line, expected):
        assert split_ingredient_line(line) == expected

    def test_heuristic_maps_display_unit_to_token(self, snapshot):
        ing = heuristic_ingredient(ExtractedIngredient(name="番茄 2个"), snapshot.units)
        assert (ing.name, ing.count, ing.unit) == ("番茄", 2.0, "piece")

    def test_to_taste_has_no_count(self, snapshot):
        ing = heuristic_ingredient(ExtractedIngredient(name="盐", amount="适量"), snapshot.units)
        assert ing.count is None
        assert ing.unit is None


class TestRecipeLLMParser:

    @pytest.mark.asyncio
    async def test_parse_text(self, snapshot):
        client = FakeInferenceClient(RECIPE_REPLY)
        parser = RecipeLLMParser(client, text_char_limit=10)

        payload = await parser.parse_text("番茄炒蛋的做法很简单", snapshot)

        assert payload.name == "番茄炒蛋"
        assert [i.name for i in payload.ingredients] == ["番茄", "盐"]
        assert payload.ingredients[1].count is None
        assert [s.text for s in payload.steps] == ["切番茄", "炒鸡蛋"]
        # Page text is truncated and the vocabulary is offered to the model
        assert client.calls[0]["prompt"].endswith("番茄炒蛋的做法很简单"[:10])
        assert "土鸡蛋" in client.calls[0]["system"]

    @pytest.mark.asyncio
    async def test_unparseable_reply(self, snapshot):
        parser = RecipeLLMParser(FakeInferenceClient("抱歉，我无法识别这个菜谱"))

        with pytest.raises(RecipeParseError) as exc_info:
            await parser.parse_text("...", snapshot)

        assert exc_info.value.message == PARSE_FAILURE_MESSAGE
        assert exc_info.value.error_type == "unparseable_recipe"

    @pytest.mark.asyncio
    async def test_service_failure(self, snapshot):
        parser = RecipeLLMParser(FakeInferenceClient(InferenceServiceError("boom")))

        with pytest.raises(RecipeParseError) as exc_info:
            await parser.parse_text("...", snapshot)

        assert exc_info.value.message == SERVICE_FAILURE_MESSAGE

    @pytest.mark.asyncio
    async def test_parse_images_strips_data_url_prefix(self, snapshot):
        client = FakeInferenceClient(RECIPE_REPLY)
        parser = RecipeLLMParser(client)

        await parser.parse_images(["data:image/png;base64,AAAA", "BBBB"], snapshot)

        assert client.calls[0]["images"] == [("image/png", "AAAA"), ("image/jpeg", "BBBB")]

    @pytest.mark.asyncio
    async def test_ingredient_lines_via_service(self, snapshot):
        reply = json.dumps({"ingredients": [
            {"name": "番茄", "count": "2", "unit": "piece"},
            {"name": "盐", "count": None, "unit": ""},
        ]}, ensure_ascii=False)
        client = FakeInferenceClient(reply)
        parser = RecipeLLMParser(client, normalize_ingredients=True)

        parsed = await parser.parse_ingredient_lines(
            [ExtractedIngredient(name="番茄", amount="2个"), ExtractedIngredient(name="盐 适量")], snapshot
        )

        assert [(i.name, i.count, i.unit) for i in parsed] == [("番茄", 2.0, "piece"), ("盐", None, None)]
        assert "1. 番茄 2个" in client.calls[0]["prompt"]

    @pytest.mark.asyncio
    async def test_ingredient_lines_fall_back_to_heuristic(self, snapshot):
        parser = RecipeLLMParser(FakeInferenceClient(InferenceServiceError("down")), normalize_ingredients=True)

        parsed = await parser.parse_ingredient_lines([ExtractedIngredient(name="鸡蛋 3个")], snapshot)

        assert [(i.name, i.count, i.unit) for i in parsed] == [("鸡蛋", 3.0, "piece")]

    @pytest.mark.asyncio
    async def test_entries_without_a_name_are_dropped(self, snapshot):
        reply = json.dumps({
            "name": "番茄炒蛋",
            "ingredients": [{"name": None, "count": 1}, {"name": "番茄", "count": 2, "unit": "piece"}, 7],
            "steps": [{"text": None}, "炒"],
        }, ensure_ascii=False)
        parser = RecipeLLMParser(FakeInferenceClient(reply))

        payload = await parser.parse_text("番茄炒蛋", snapshot)

        assert [(i.name, i.count) for i in payload.ingredients] == [("番茄", 2.0)]
        assert [s.text for s in payload.steps] == ["炒"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", ['{"ingredients": 5}', '{"ingredients": {"name": "鸡蛋"}}'])
    async def test_ingredient_lines_with_non_list_reply_fall_back(self, snapshot, reply):
        parser = RecipeLLMParser(FakeInferenceClient(reply), normalize_ingredients=True)

        parsed = await parser.parse_ingredient_lines([ExtractedIngredient(name="鸡蛋 3个")], snapshot)

        assert [(i.name, i.count, i.unit) for i in parsed] == [("鸡蛋", 3.0, "piece")]

    @pytest.mark.asyncio
    async def test_ingredient_lines_without_normalization_skip_the_service(self, snapshot):
        client = FakeInferenceClient(RECIPE_REPLY)
        parser = RecipeLLMParser(client, normalize_ingredients=False)

        parsed = await parser.parse_ingredient_lines([ExtractedIngredient(name="番茄 2个")], snapshot)

        assert parsed[0].name == "番茄"
        assert client.calls == []


class TestCategorize:

    @pytest.mark.asyncio
    async def test_valid_categories_are_kept_and_invalid_fall_back(self):
        reply = json.dumps({"ingredients": [
            {"name": "牛腩", "category": "肉类"},
            {"name": "神秘食材", "category": "外星食物"},
        ]}, ensure_ascii=False)
        parser = RecipeLLMParser(FakeInferenceClient(reply))

        categories = await parser.categorize_ingredients(["牛腩", "神秘食材", "没回答的"])

        assert categories == {"牛腩": "肉类", "神秘食材": FALLBACK_CATEGORY, "没回答的": FALLBACK_CATEGORY}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", [InferenceServiceError("down"), "not json", '{"ingredients": "nope"}'])
    async def test_failures_always_yield_a_category(self, reply):
        parser = RecipeLLMParser(FakeInferenceClient(reply))

        categories = await parser.categorize_ingredients(["神秘食材"])

        assert categories["神秘食材"] in INGREDIENT_CATEGORIES

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", ['{"ingredients": 5}', '{"ingredients": null}', '{"ingredients": [3, null]}'])
    async def test_non_list_reply_falls_back_per_name(self, reply):
        parser = RecipeLLMParser(FakeInferenceClient(reply))

        categories = await parser.categorize_ingredients(["神秘食材"])

        assert categories == {"神秘食材": FALLBACK_CATEGORY}
