"""
Inference-based recipe parsing.

Two phases, shared by text and image input: build a prompt that embeds the
current reference vocabulary so the model reuses known ingredients and units,
then pull the first balanced JSON object out of the free-form reply.
"""
import json
import re
import logging
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, field_validator, model_validator

from app.core.config import settings
from app.core.constants import INGREDIENT_CATEGORIES, FALLBACK_CATEGORY, DEFAULT_UNIT
from app.schemas.reference import UnitRef, VocabularySnapshot
from .base_parser import ExtractedIngredient
from .errors import InferenceServiceError, RecipeParseError

logger = logging.getLogger(__name__)

PARSE_FAILURE_MESSAGE = "Could not parse recipe content"
SERVICE_FAILURE_MESSAGE = "The recipe parsing service is unavailable, please try again later"

_NUMBER = r'\d+\s+\d+/\d+|\d+/\d+|\d+(?:\.\d+)?'
_AMOUNT_PREFIX = re.compile(rf'^\s*({_NUMBER})\s*(.*)$')
_TRAILING_AMOUNT = re.compile(rf'^(.*?[^\d\s./])\s*((?:{_NUMBER})\s*\S*)$')
_UNQUANTIFIED = ("适量", "少许", "若干", "少量", "随意")
_DATA_URL_PREFIX = re.compile(r'^data:(image/[\w.+-]+);base64,')


def coerce_count(value: Any) -> Optional[float]:
    """Numeric quantity or None ("to taste"); never turns missing into zero"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if value == value else None
    if not isinstance(value, str):
        return None

    text = value.strip()
    match = re.fullmatch(r'(\d+)\s+(\d+)\s*/\s*(\d+)', text)
    if match:
        whole, num, den = (int(g) for g in match.groups())
        return whole + num / den if den else None
    match = re.fullmatch(r'(\d+)\s*/\s*(\d+)', text)
    if match:
        num, den = (int(g) for g in match.groups())
        return num / den if den else None
    if re.fullmatch(r'\d+(?:\.\d+)?', text):
        return float(text)
    return None


class LLMIngredient(BaseModel):
    name: Optional[str] = None  # None entries are dropped by the payload
    count: Optional[float] = None
    unit: Optional[str] = None

    @model_validator(mode='before')
    @classmethod
    def accept_plain_string(cls, data):
        if isinstance(data, str):
            return {"name": data}
        if not isinstance(data, dict):
            return {}
        return data

    @field_validator('name', mode='before')
    @classmethod
    def strip_name(cls, v):
        return v.strip() or None if isinstance(v, str) else None

    @field_validator('count', mode='before')
    @classmethod
    def parse_count(cls, v):
        return coerce_count(v)

    @field_validator('unit', mode='before')
    @classmethod
    def blank_unit_is_none(cls, v):
        if isinstance(v, str):
            return v.strip() or None
        return None


class LLMStep(BaseModel):
    text: Optional[str] = None

    @model_validator(mode='before')
    @classmethod
    def accept_plain_string(cls, data):
        if isinstance(data, str):
            return {"text": data}
        if not isinstance(data, dict):
            return {}
        return data

    @field_validator('text', mode='before')
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else None


def _entries(data: Dict[str, Any], key: str) -> List[Any]:
    """List value of ``key``; any other shape counts as no entries"""
    value = data.get(key)
    return value if isinstance(value, list) else []


class LLMRecipePayload(BaseModel):
    """Output schema the inference service is instructed to follow"""
    name: Optional[str] = None
    ingredients: List[LLMIngredient] = []
    steps: List[LLMStep] = []

    @field_validator('ingredients', 'steps', mode='before')
    @classmethod
    def non_list_is_empty(cls, v):
        return v if isinstance(v, list) else []

    @field_validator('name', mode='before')
    @classmethod
    def non_string_name_is_none(cls, v):
        return v if isinstance(v, str) else None

    @model_validator(mode='after')
    def drop_blank_entries(self):
        self.ingredients = [ing for ing in self.ingredients if ing.name]
        self.steps = [step for step in self.steps if step.text]
        if self.name is not None:
            self.name = self.name.strip() or None
        return self


def extract_json_object(text: str) -> Dict[str, Any]:
    """Parse the first balanced ``{...}`` region of ``text``.

    Braces inside string literals do not count. Prose and markdown fences
    around the object are ignored.

    Raises:
        ValueError: no balanced region exists or it is not valid JSON.
    """
    if not text:
        raise ValueError("Empty response")

    start = text.find('{')
    if start == -1:
        raise ValueError("No JSON object found in response")

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        ch = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif ch == '\\':
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == '{':
            depth += 1
        elif ch == '}':
            depth -= 1
            if depth == 0:
                return json.loads(text[start:index + 1])

    raise ValueError("Unbalanced JSON object in response")


def lookup_unit(token: Optional[str], units: List[UnitRef]) -> Optional[str]:
    """Map a unit token or display name to the vocabulary's unit token"""
    if not token:
        return None
    token = token.strip()
    lowered = token.lower()
    for unit in units:
        if unit.name.lower() == lowered or unit.name_zh == token:
            return unit.name
    return token or None


def split_ingredient_line(line: str) -> Tuple[str, Optional[str]]:
    """Split "番茄 2个" / "盐 适量" into name and amount"""
    line = re.sub(r'\s+', ' ', line or '').strip()
    match = _TRAILING_AMOUNT.match(line)
    if match and match.group(1).strip():
        return match.group(1).strip(), match.group(2).strip()
    for word in _UNQUANTIFIED:
        if line.endswith(word) and len(line) > len(word):
            return line[:-len(word)].strip(), word
    return line, None


def parse_amount(amount: Optional[str], units: List[UnitRef]) -> Tuple[Optional[float], Optional[str]]:
    """Read a leading quantity and the unit after it; no number means to taste"""
    if not amount:
        return None, None
    match = _AMOUNT_PREFIX.match(amount)
    if not match:
        return None, None
    return coerce_count(match.group(1)), lookup_unit(match.group(2), units)


def heuristic_ingredient(ingredient: ExtractedIngredient, units: List[UnitRef]) -> LLMIngredient:
    """Local fallback used when the inference service cannot normalize a line"""
    name, amount = ingredient.name, ingredient.amount
    if amount is None:
        name, amount = split_ingredient_line(name)
    count, unit = parse_amount(amount, units)
    return LLMIngredient(name=name, count=count, unit=unit)


def _unit_list(snapshot: VocabularySnapshot) -> str:
    return ", ".join(f"{u.name} ({u.name_zh})" for u in snapshot.units)


def _ingredient_list(snapshot: VocabularySnapshot) -> str:
    return ", ".join(i.name for i in snapshot.ingredients)


def build_recipe_system_prompt(snapshot: VocabularySnapshot, from_images: bool = False) -> str:
    """Instruction for recipe extraction, biased toward the known vocabulary"""
    source = "图片" if from_images else "内容"
    return f"""你是一个专业的菜谱解析助手。请从提供的{source}中提取菜谱的名称、食材和步骤。

输出格式要求（JSON）：
{{
  "name": "菜谱名称",
  "ingredients": [
    {{
      "name": "食材中文名称",
      "count": 数量（数字，如果是"适量"则为null）,
      "unit": "单位英文名称"
    }}
  ],
  "steps": [
    {{"text": "步骤1"}},
    {{"text": "步骤2"}}
  ]
}}

可用的单位（优先使用这些）: {_unit_list(snapshot)}

已有的食材（尽量匹配这些）: {_ingredient_list(snapshot)}

规则：
1. 食材名称必须是中文
2. 数量必须是数字，如果原文是"适量"、"少许"等，则设为null
3. 单位必须是英文，从可用单位中选择最接近的
4. 如果找不到合适的单位，使用 "{DEFAULT_UNIT}" 作为默认
5. 步骤要完整清晰，每一步是一个独立的操作
6. 只输出JSON，不要其他内容"""


def build_ingredient_lines_prompt(lines: List[str], snapshot: VocabularySnapshot) -> str:
    numbered = "\n".join(f"{i + 1}. {line}" for i, line in enumerate(lines))
    return f"""请从以下食材列表中提取食材名称、数量和单位。

食材列表:
{numbered}

可用的单位: {_unit_list(snapshot)}

已有的食材（尽量匹配这些）: {_ingredient_list(snapshot)}

输出JSON格式:
{{
  "ingredients": [
    {{"name": "食材名称", "count": 数量或null, "unit": "单位英文名或null"}}
  ]
}}

规则:
1. 食材名称必须是中文
2. 数量为数字，如果是"适量"/"少许"等则为null
3. 单位用英文，从可用单位选择
4. 只输出JSON"""


def build_categorize_prompt(names: List[str]) -> str:
    numbered = "\n".join(f"{i + 1}. {name}" for i, name in enumerate(names))
    return f"""请为以下食材分配合适的分类。

食材列表:
{numbered}

可用的分类: {", ".join(INGREDIENT_CATEGORIES)}

输出JSON格式:
{{
  "ingredients": [
    {{"name": "食材名称", "category": "分类"}}
  ]
}}

规则:
1. 每个食材必须分配到最合适的一个分类
2. 分类必须从可用分类中选择
3. 如果不确定，使用"{FALLBACK_CATEGORY}"
4. 只输出JSON"""


class RecipeLLMParser:
    """Recipe parsing, ingredient normalization and categorization via the inference service"""

    def __init__(self, client, text_char_limit: Optional[int] = None,
                 normalize_ingredients: Optional[bool] = None):
        self.client = client
        self.text_char_limit = text_char_limit or settings.LLM_TEXT_CHAR_LIMIT
        self.normalize_ingredients = (
            settings.LLM_NORMALIZE_INGREDIENTS if normalize_ingredients is None else normalize_ingredients
        )

    async def close(self) -> None:
        await self.client.close()

    async def parse_text(self, text: str, snapshot: VocabularySnapshot) -> LLMRecipePayload:
        """Parse reduced page text; terminal layer, so failures raise RecipeParseError"""
        system = build_recipe_system_prompt(snapshot)
        prompt = f"请从以下网页内容中提取菜谱信息：\n\n{text[:self.text_char_limit]}"
        reply = await self._complete_or_fail(system, prompt)
        return self._parse_recipe_reply(reply)

    async def parse_images(self, images: List[str], snapshot: VocabularySnapshot) -> LLMRecipePayload:
        """Parse recipe photographs (base64, optional data URL prefix)"""
        system = build_recipe_system_prompt(snapshot, from_images=True)
        inline_images = [self._decode_image(image) for image in images]
        reply = await self._complete_or_fail(
            system, "请从这些图片中提取菜谱信息（食材和步骤）", images=inline_images
        )
        return self._parse_recipe_reply(reply)

    async def parse_ingredient_lines(self, ingredients: List[ExtractedIngredient],
                                     snapshot: VocabularySnapshot) -> List[LLMIngredient]:
        """Split "name amount" lines into name/count/unit.

        Degrades to the local heuristic when normalization is disabled or the
        service call or its reply fails.
        """
        if not ingredients:
            return []

        if self.normalize_ingredients:
            lines = [f"{ing.name} {ing.amount}" if ing.amount else ing.name for ing in ingredients]
            try:
                reply = await self.client.complete(
                    None, build_ingredient_lines_prompt(lines, snapshot), max_tokens=2048
                )
                data = extract_json_object(reply)
                parsed = [LLMIngredient.model_validate(item) for item in _entries(data, "ingredients")]
                parsed = [ing for ing in parsed if ing.name]
                if parsed:
                    return parsed
                logger.warning("Ingredient normalization returned no entries, using local parsing")
            except (InferenceServiceError, ValueError) as e:
                logger.warning(f"Ingredient normalization failed, using local parsing: {e}")

        return [heuristic_ingredient(ing, snapshot.units) for ing in ingredients]

    async def categorize_ingredients(self, names: List[str]) -> Dict[str, str]:
        """Category per name; anything invalid or missing falls back per name"""
        if not names:
            return {}

        assigned: Dict[str, str] = {}
        try:
            reply = await self.client.complete(None, build_categorize_prompt(names), max_tokens=2048)
            data = extract_json_object(reply)
            for item in _entries(data, "ingredients"):
                if not isinstance(item, dict):
                    continue
                name, category = item.get("name"), item.get("category")
                if isinstance(name, str) and category in INGREDIENT_CATEGORIES:
                    assigned[name.strip()] = category
        except (InferenceServiceError, ValueError) as e:
            logger.error(f"Failed to categorize ingredients: {e}")

        return {name: assigned.get(name, FALLBACK_CATEGORY) for name in names}

    async def _complete_or_fail(self, system: str, prompt: str, images=None) -> str:
        try:
            return await self.client.complete(system, prompt, images=images)
        except InferenceServiceError as e:
            logger.error(f"Recipe inference call failed: {e}")
            raise RecipeParseError(SERVICE_FAILURE_MESSAGE) from e

    def _parse_recipe_reply(self, reply: str) -> LLMRecipePayload:
        try:
            return LLMRecipePayload.model_validate(extract_json_object(reply))
        except ValueError as e:
            logger.warning(f"Unparseable recipe reply: {e}")
            raise RecipeParseError(PARSE_FAILURE_MESSAGE) from e

    def _decode_image(self, payload: str) -> Tuple[str, str]:
        payload = payload.strip()
        match = _DATA_URL_PREFIX.match(payload)
        if match:
            return match.group(1), payload[match.end():]
        return "image/jpeg", payload
