import os

import pytest

from mathocr.config import AIConfig, Config, _load_dotenv, get_config, reset_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in (
        "AI_API_KEY", "GEMINI_API_KEY", "API_KEY", "AI_PROVIDER", "AI_MODEL", "AI_BASE_URL",
        "AI_TEMPERATURE", "RENDER_SCALE", "RENDER_JPEG_QUALITY", "CROP_PADDING_PX",
        "PAGE_MAX_RETRIES", "DEBUG", "DUMP_RAW_RESPONSES", "OUTPUT_DIR",
        "AI_INPUT_COST_PER_1M_USD", "AI_OUTPUT_COST_PER_1M_USD",
    ):
        monkeypatch.delenv(key, raising=False)
    reset_config()
    yield
    reset_config()


def test_defaults():
    config = Config()

    assert config.ai.provider == "Gemini"
    assert config.ai.model == "gemini-2.5-flash"
    assert config.ai.temperature == pytest.approx(0.1)
    assert config.render.scale == 3.0
    assert config.render.jpeg_quality == 95
    assert config.crop.padding == 10
    assert config.retry.max_retries == 0
    assert config.output_dir == config.base_dir / "output"


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("AI_MODEL", "gemini-2.5-pro")
    monkeypatch.setenv("RENDER_SCALE", "2")
    monkeypatch.setenv("CROP_PADDING_PX", "4")
    monkeypatch.setenv("PAGE_MAX_RETRIES", "2")
    monkeypatch.setenv("DEBUG", "yes")

    config = Config()

    assert config.ai.model == "gemini-2.5-pro"
    assert config.render.scale == 2.0
    assert config.crop.padding == 4
    assert config.retry.max_retries == 2
    assert config.debug
    assert config.dump_raw_responses


def test_invalid_number_falls_back(monkeypatch):
    monkeypatch.setenv("CROP_PADDING_PX", "wide")

    assert Config().crop.padding == 10


def test_api_key_fallbacks(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "gemini-key")
    assert AIConfig().api_key == "gemini-key"

    monkeypatch.setenv("AI_API_KEY", "ai-key")
    assert AIConfig().api_key == "ai-key"


@pytest.mark.parametrize(
    "provider, base_url, expected",
    [
        ("Gemini", "", "https://generativelanguage.googleapis.com/v1beta/openai/"),
        ("OpenAI", "", ""),
        ("Gemini", "https://proxy.test/v1/chat/completions", "https://proxy.test/v1/"),
        ("Gemini", "https://proxy.test/v1", "https://proxy.test/v1/"),
    ],
)
def test_normalized_base_url(provider, base_url, expected):
    assert AIConfig(provider=provider, base_url=base_url).get_normalized_base_url() == expected


def test_estimate_cost():
    ai = AIConfig(input_cost_per_1m_usd=0.30, output_cost_per_1m_usd=2.50)

    assert ai.estimate_cost(1_000_000, 100_000) == pytest.approx(0.55)
    assert AIConfig().estimate_cost(1000, 1000) is None


def test_export_paths(tmp_path):
    config = Config(output_dir=tmp_path)

    assert config.get_docx_path("exam") == tmp_path / "exam.docx"
    assert config.get_json_path("exam") == tmp_path / "exam.json"


def test_dotenv_does_not_override(tmp_path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text(
        "# comment\nMATHOCR_TEST_SET=from-file\nMATHOCR_TEST_NEW='quoted'\nnot a pair\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("MATHOCR_TEST_SET", "from-env")
    monkeypatch.setenv("MATHOCR_TEST_NEW", "")

    _load_dotenv(env_file)

    assert os.environ["MATHOCR_TEST_SET"] == "from-env"
    assert os.environ["MATHOCR_TEST_NEW"] == "quoted"


def test_get_config_is_cached():
    assert get_config() is get_config()
