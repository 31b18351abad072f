# -----------------------------------------------------------
# Adaptive Entity-Routing RAG
# Dictionary and pattern based entity spotting.
# Runs before any model call; pure functions, no I/O.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

"""Dictionary and pattern based entity spotting."""

from __future__ import annotations

import re

from adaptive_rag.schemas import EntityType, ExtractedEntity

# Colloquial city nicknames -> canonical city name
PLACE_ALIASES: dict[str, str] = {
    "魔都": "上海", "帝都": "北京", "妖都": "广州", "羊城": "广州",
    "蓉城": "成都", "鹏城": "深圳", "江城": "武汉", "山城": "重庆",
    "泉城": "济南", "冰城": "哈尔滨", "春城": "昆明", "榕城": "福州",
    "石城": "南京", "星城": "长沙", "花城": "广州", "雾都": "重庆",
}

PLACES: tuple[str, ...] = (
    "北京", "上海", "天津", "重庆",
    "广州", "深圳", "杭州", "南京", "成都", "武汉", "西安", "苏州",
    "长沙", "郑州", "青岛", "大连", "宁波", "厦门", "济南", "福州",
    "合肥", "昆明", "贵阳", "南宁", "南昌", "太原", "石家庄", "长春",
    "哈尔滨", "沈阳", "兰州", "西宁", "银川", "呼和浩特", "乌鲁木齐",
    "拉萨", "海口", "三亚",
    "中国", "美国", "日本", "韩国", "英国", "法国", "德国", "俄罗斯",
    "印度", "巴西", "加拿大", "澳大利亚", "新加坡", "香港", "台湾", "澳门",
    "纽约", "伦敦", "巴黎", "东京", "首尔", "悉尼", "多伦多",
    "洛杉矶", "旧金山", "硅谷", "西雅图", "芝加哥", "波士顿",
)

ORGANIZATIONS: tuple[str, ...] = (
    "苹果", "Apple", "谷歌", "Google", "微软", "Microsoft", "亚马逊", "Amazon",
    "特斯拉", "Tesla", "华为", "阿里巴巴", "腾讯", "百度", "字节跳动", "京东",
    "小米", "OpenAI", "Meta", "Facebook", "Twitter", "SpaceX",
    "Netflix", "英伟达", "NVIDIA", "AMD", "Intel", "三星", "Samsung",
)

PERSONS: tuple[str, ...] = (
    "马斯克", "Elon Musk", "库克", "Tim Cook", "马云", "马化腾", "李彦宏",
    "雷军", "任正非", "刘强东", "张一鸣", "黄仁勋", "比尔盖茨", "Bill Gates",
    "扎克伯格", "Mark Zuckerberg", "贝索斯", "Jeff Bezos", "乔布斯", "Steve Jobs",
)

PRODUCTS: tuple[str, ...] = (
    "iPhone", "iPad", "MacBook", "Apple Watch", "AirPods",
    "ChatGPT", "GPT-4o", "GPT-4", "Claude", "Gemini", "Llama",
    "Model Y", "Model 3", "Model S", "Model X", "Cybertruck",
    "微信", "WeChat", "支付宝", "淘宝", "抖音", "TikTok",
)

CONCEPTS: tuple[str, ...] = (
    "VPN", "DNS", "TCP", "UDP", "HTTPS", "HTTP", "SSL", "TLS",
    "WiFi", "WLAN", "路由器", "交换机", "防火墙", "代理", "Proxy",
    "L2TP", "PPTP", "IPSec", "OpenVPN", "WireGuard", "IKEv2",
    "API", "SDK", "REST", "GraphQL", "JSON", "XML", "NoSQL", "SQL",
    "Docker", "Kubernetes", "K8s", "Git", "CI/CD", "DevOps",
    "Python", "Java", "JavaScript", "TypeScript", "React", "Vue", "Angular",
    "人工智能", "机器学习", "深度学习", "自然语言处理", "NLP",
    "LLM", "大模型", "RAG", "Embedding", "向量数据库", "Transformer",
    "Windows", "Linux", "MacOS", "Android", "iOS",
    "驱动", "补丁", "重启", "安装", "卸载", "配置",
)

# (dictionary, type, confidence) in scan order
_DICTIONARIES: tuple[tuple[tuple[str, ...], EntityType, float], ...] = (
    (PLACES, EntityType.LOCATION, 0.9),
    (ORGANIZATIONS, EntityType.ORGANIZATION, 0.9),
    (PERSONS, EntityType.PERSON, 0.9),
    (PRODUCTS, EntityType.PRODUCT, 0.85),
    (CONCEPTS, EntityType.CONCEPT, 0.85),
)

ERROR_CODE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"(?:错误代码|报错|错误|故障码|异常|(?<![A-Za-z])(?:error|code))[:：\s]?(\d{2,5})", re.IGNORECASE),
    re.compile(r"(\d{3,5})(?:错误|报错|异常|故障)"),
)

GREETINGS: tuple[str, ...] = (
    "你好", "您好", "hello", "hi", "嗨", "哈喽", "早上好", "下午好", "晚上好",
    "早安", "午安", "晚安", "good morning", "good afternoon", "good evening",
    "在吗", "在不在", "有人吗", "请问在吗",
    "谢谢", "感谢", "多谢", "thanks", "thank you",
    "再见", "拜拜", "bye", "goodbye",
)


def _is_ascii(term: str) -> bool:
    return all(ord(c) < 128 for c in term)


def _contains(text: str, text_lower: str, term: str) -> bool:
    if not _is_ascii(term):
        return term in text
    # Latin terms must not match inside longer words ("SQL" in "NoSQL", "API" in "rapid").
    return re.search(rf"(?<![A-Za-z]){re.escape(term.lower())}(?![A-Za-z])", text_lower) is not None


def is_small_talk(text: str) -> bool:
    """Return True for greetings, thanks and farewells that need no retrieval.

    Args:
        text: Raw user query.

    Returns:
        bool: Exact greeting, or a short query (<= 10 chars) containing one.
    """
    normalized = text.strip().lower()
    if not normalized:
        return False
    if normalized in GREETINGS:
        return True
    if len(normalized) > 10:
        return False
    for greeting in GREETINGS:
        if _is_ascii(greeting):
            if re.search(rf"\b{re.escape(greeting)}\b", normalized):
                return True
        elif greeting in normalized:
            return True
    return False


def detect(text: str) -> list[ExtractedEntity]:
    """Spot known entities in ``text`` without calling any model.

    Place aliases come first and are emitted under their canonical name with
    ``pre_mapped=True``; then places, organizations, persons, products and
    technical concepts; finally error-code patterns as CONCEPT entities.

    Args:
        text: Raw user query.

    Returns:
        list[ExtractedEntity]: Entities in scan order, unique by name.
    """
    entities: list[ExtractedEntity] = []
    seen: set[str] = set()
    text_lower = text.lower()

    for alias, canonical in PLACE_ALIASES.items():
        if alias in text and canonical.lower() not in seen:
            entities.append(ExtractedEntity(
                name=canonical,
                type=EntityType.LOCATION,
                text=alias,
                confidence=0.95,
                pre_mapped=True,
            ))
            seen.update({alias.lower(), canonical.lower()})

    for terms, entity_type, confidence in _DICTIONARIES:
        for term in terms:
            if term.lower() in seen or not _contains(text, text_lower, term):
                continue
            entities.append(ExtractedEntity(
                name=term, type=entity_type, text=term, confidence=confidence
            ))
            seen.add(term.lower())

    for pattern in ERROR_CODE_PATTERNS:
        for match in pattern.finditer(text):
            code = match.group(1)
            if code in seen:
                continue
            entities.append(ExtractedEntity(
                name=f"错误代码 {code}",
                type=EntityType.CONCEPT,
                text=code,
                confidence=0.9,
            ))
            seen.add(code)

    return entities


def preprocess(text: str) -> tuple[str, dict[str, str]]:
    """Annotate place aliases in ``text`` as ``alias(即canonical)``.

    Small models miss colloquial nicknames, so the canonical name is spelled
    out next to the alias before the text is sent to them.

    Args:
        text: Raw user query.

    Returns:
        tuple[str, dict[str, str]]: Annotated text and the alias -> canonical map.
    """
    annotated = text
    mapping: dict[str, str] = {}
    for alias, canonical in PLACE_ALIASES.items():
        if alias in text:
            mapping[alias] = canonical
            annotated = annotated.replace(alias, f"{alias}(即{canonical})", 1)
    return annotated, mapping


def postprocess(
    model_entities: list[ExtractedEntity],
    pre_mapped: dict[str, str],
) -> list[ExtractedEntity]:
    """Reconcile model output with the alias pre-mapping.

    Pre-mapped entities win. A model entity whose name or text is a known
    alias is rewritten to its canonical place.

    Args:
        model_entities: Entities returned by the model (already filtered).
        pre_mapped: Alias -> canonical map from ``preprocess``.

    Returns:
        list[ExtractedEntity]: Corrected entity list.
    """
    corrected: list[ExtractedEntity] = []
    seen: set[str] = set()

    for alias, canonical in pre_mapped.items():
        if canonical in seen:
            continue
        corrected.append(ExtractedEntity(
            name=canonical,
            type=EntityType.LOCATION,
            text=alias,
            confidence=0.95,
            pre_mapped=True,
        ))
        seen.update({alias, canonical})

    for entity in model_entities:
        if entity.name in seen or (entity.text and entity.text in seen):
            continue
        canonical = PLACE_ALIASES.get(entity.name) or PLACE_ALIASES.get(entity.text)
        if canonical:
            if canonical not in seen:
                corrected.append(ExtractedEntity(
                    name=canonical,
                    type=EntityType.LOCATION,
                    text=entity.text or entity.name,
                    confidence=0.9,
                    pre_mapped=True,
                ))
            seen.update({entity.name, canonical})
            continue
        corrected.append(entity)
        seen.add(entity.name)

    return corrected
