from detail_service.core.config import apply_env_overrides, deep_merge, load_settings


def test_deep_merge_nested():
    base = {"a": {"x": 1, "y": 2}, "b": 1}
    merged = deep_merge(base, {"a": {"y": 3, "z": 4}, "c": 5})
    assert merged == {"a": {"x": 1, "y": 3, "z": 4}, "b": 1, "c": 5}
    assert base == {"a": {"x": 1, "y": 2}, "b": 1}


def test_deep_merge_replaces_non_dicts():
    assert deep_merge({"a": {"x": 1}}, {"a": [1, 2]}) == {"a": [1, 2]}


def test_env_overrides_parse_yaml_values():
    cfg = {"app": {"api": {"port": 8080}}}
    environ = {
        "DETAIL__APP__API__PORT": "9090",
        "DETAIL__LIMITS__HISTORY_TURNS": "0",
        "DETAIL__CHAT__DEFAULT": "openai",
        "DETAIL__SEARCH__ARGS__INCLUDE": "[a, b]",
        "DETAIL__BROKEN": "{unclosed",
        "UNRELATED": "x",
    }
    out = apply_env_overrides(cfg, environ)
    assert out["app"]["api"]["port"] == 9090
    assert out["limits"]["history_turns"] == 0
    assert out["chat"]["default"] == "openai"
    assert out["search"]["args"]["include"] == ["a", "b"]
    assert out["broken"] == "{unclosed"
    assert "unrelated" not in out


def test_load_settings_defaults(monkeypatch):
    monkeypatch.setenv("DETAIL_IGNORE_DEV_CONFIG", "true")
    monkeypatch.setenv("DETAIL__APP__API__PORT", "9999")
    cfg = load_settings()

    assert cfg["app"]["api"]["port"] == 9999
    assert cfg["search"]["impl"].endswith("TavilySearchClient")
    names = [p["name"] for p in cfg["chat"]["providers"]]
    assert {"openai", "deepseek", "scripted"} <= set(names)
    assert cfg["chat"]["default"] in names
    assert cfg["limits"]["history_turns"] == 3
