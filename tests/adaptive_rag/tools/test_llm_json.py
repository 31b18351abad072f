from adaptive_rag.nodes.models import ResolutionResponse
from adaptive_rag.tools.llm_json import EMPTY_JSON, decode_llm_json, decode_model


def test_plain_object():
    decoded = decode_llm_json('{"a": 1}')
    assert decoded.data == {"a": 1}
    assert decoded.method == "direct"


def test_fenced_object():
    decoded = decode_llm_json('```json\n{"a": 1}\n```')
    assert decoded.data == {"a": 1}
    assert decoded.ok


def test_object_inside_prose():
    decoded = decode_llm_json('Sure! {"a": 1} Hope it helps.')
    assert decoded.data == {"a": 1}
    assert decoded.method == "braces"


def test_truncated_object_is_repaired():
    decoded = decode_llm_json('{"entities": [{"name": "Apple"')
    assert decoded.data == {"entities": [{"name": "Apple"}]}
    assert decoded.method == "repaired"


def test_trailing_comma_is_repaired():
    decoded = decode_llm_json('{"keywords": ["a", "b",')
    assert decoded.data == {"keywords": ["a", "b"]}


def test_fields_are_scraped_from_broken_json():
    raw = '{"intent": "factual", "confidence": 0.9 oops "keywords": ["a"]}'
    decoded = decode_llm_json(raw, fields=["intent", "confidence", "keywords", "missing"])
    assert decoded.method == "scraped"
    assert decoded.data == {"intent": "factual", "confidence": 0.9, "keywords": ["a"]}


def test_undecodable_gives_sentinel():
    assert decode_llm_json("no json here") is EMPTY_JSON
    assert decode_llm_json(None) is EMPTY_JSON
    assert decode_llm_json("   ") is EMPTY_JSON
    assert not EMPTY_JSON.ok


def test_dict_passes_through():
    assert decode_llm_json({"a": 1}).data == {"a": 1}


def test_decode_model_uses_wire_names():
    response, decoded = decode_model('{"isMatch": true, "normalizedName": "Tesla"}', ResolutionResponse)
    assert decoded
    assert response.is_match is True
    assert response.normalized_name == "Tesla"


def test_decode_model_drops_invalid_fields():
    response, decoded = decode_model('{"isMatch": true, "confidence": "very high"}', ResolutionResponse)
    assert decoded
    assert response.is_match is True
    assert response.confidence is None


def test_decode_model_on_garbage_returns_defaults():
    response, decoded = decode_model("nothing", ResolutionResponse)
    assert not decoded
    assert response == ResolutionResponse()
