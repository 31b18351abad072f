from adaptive_rag.configuration import DEFAULT_CONSTRAINT_PRIORITY, Configuration
from adaptive_rag.schemas import EntityType


def test_configuration_defaults():
    cfg = Configuration()
    assert cfg.model == "gemini-2.0-flash"
    assert cfg.retrieval_k == 5
    assert cfg.max_retries == 3
    assert cfg.min_result_count == 3
    assert cfg.similarity_threshold == 0.3
    assert cfg.enable_reranking is True
    assert cfg.rerank_candidates == 10
    assert cfg.constraint_priority == DEFAULT_CONSTRAINT_PRIORITY


def test_default_priority_order():
    assert DEFAULT_CONSTRAINT_PRIORITY[0] == EntityType.PERSON
    assert DEFAULT_CONSTRAINT_PRIORITY[-1] == EntityType.OTHER
    assert DEFAULT_CONSTRAINT_PRIORITY.index(EntityType.PRODUCT) < DEFAULT_CONSTRAINT_PRIORITY.index(
        EntityType.LOCATION
    )


def test_from_runnable_config_none_returns_defaults():
    cfg = Configuration.from_runnable_config(None)
    assert cfg == Configuration()


def test_from_runnable_config_with_configurable():
    config = {"configurable": {"model": "custom-model", "max_retries": 1, "min_result_count": 5}}
    cfg = Configuration.from_runnable_config(config)
    assert cfg.model == "custom-model"
    assert cfg.max_retries == 1
    assert cfg.min_result_count == 5


def test_from_runnable_config_ignores_unknown_keys():
    config = {"configurable": {"model": "custom-model", "thread_id": "abc"}}
    cfg = Configuration.from_runnable_config(config)
    assert cfg.model == "custom-model"
    assert cfg.retrieval_k == 5


def test_constraint_priority_accepts_strings():
    cfg = Configuration(constraint_priority=("location", "person"))
    assert cfg.constraint_priority == (EntityType.LOCATION, EntityType.PERSON)


def test_priority_of_unlisted_type_ranks_last():
    cfg = Configuration(constraint_priority=(EntityType.PERSON, EntityType.LOCATION))
    assert cfg.priority_of(EntityType.PERSON) == 0
    assert cfg.priority_of(EntityType.LOCATION) == 1
    assert cfg.priority_of(EntityType.DATE) == 2


def test_configuration_is_frozen():
    cfg = Configuration()
    try:
        cfg.model = "other"  # type: ignore[misc]
        assert False, "Should have raised FrozenInstanceError"
    except AttributeError:
        pass
