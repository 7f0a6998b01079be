import pytest
from pydantic import ValidationError

from novel_refiner.config import CompletionConfig, Config
from novel_refiner.refinement.stages import DEFAULT_STAGES


def test_default_config():
    config = Config()
    assert config.completion.model == "gpt-4o-mini"
    assert config.refinement.stages == DEFAULT_STAGES
    assert config.refinement.continue_on_error is True
    assert config.alerts.low_score_threshold == 60
    assert "{content}" in config.prompts.remove_ai_flavor


def test_config_from_yaml(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("""
completion:
  model: qwen-plus
  base_url: http://localhost:8000/v1
refinement:
  stages: [remove-ai-flavor, add-techniques]
  delay_between_tasks: 0.5
alerts:
  low_score_threshold: 50
  pacing_threshold: null
""")

    config = Config.from_yaml(config_file)
    assert config.completion.model == "qwen-plus"
    assert config.completion.base_url == "http://localhost:8000/v1"
    assert config.refinement.stages == ["remove-ai-flavor", "add-techniques"]
    assert config.refinement.delay_between_tasks == 0.5
    assert config.alerts.low_score_threshold == 50
    assert config.alerts.pacing_threshold is None
    assert config.alerts.ai_flavor_threshold == 70


def test_empty_yaml_gives_defaults(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("")
    assert Config.from_yaml(config_file) == Config()


def test_config_validation():
    with pytest.raises(ValidationError):
        Config(completion=CompletionConfig(temperature=3))
    with pytest.raises(ValidationError):
        Config(alerts={"low_score": 50})


def test_config_to_yaml(tmp_path):
    config = Config(completion=CompletionConfig(model="deepseek-chat"), log_file=tmp_path / "run.log")
    output_file = tmp_path / "output.yaml"

    config.to_yaml(output_file)

    assert output_file.exists()
    loaded_config = Config.from_yaml(output_file)
    assert loaded_config.completion.model == "deepseek-chat"
    assert loaded_config.log_file == tmp_path / "run.log"
    assert loaded_config.alerts.model_dump() == config.alerts.model_dump()
