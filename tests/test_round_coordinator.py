"""Tests for round definitions and prompt overrides."""

from simplemath.pipeline.round_coordinator import DEFAULT_PROMPTS, Round, RoundCoordinator


def test_round_order_and_labels():
    assert [r.value for r in Round] == [1, 2, 3]
    assert Round.ANALYSIS.display_name == "需求分析"
    assert Round.FEASIBILITY.display_name == "技术评估"
    assert Round.CODEGEN.display_name == "代码生成"


def test_default_configs():
    coordinator = RoundCoordinator()

    configs = coordinator.configs()

    assert [c.round for c in configs] == list(Round)
    assert all(c.system_prompt == DEFAULT_PROMPTS[c.round] for c in configs)
    assert "```javascript" in coordinator.get_system_prompt(Round.CODEGEN)


def test_prompt_override_from_directory(tmp_path):
    (tmp_path / "feasibility_system_prompt.md").write_text("custom feasibility", encoding="utf-8")

    coordinator = RoundCoordinator(prompts_dir=tmp_path)

    assert coordinator.get_system_prompt(Round.FEASIBILITY) == "custom feasibility"
    assert coordinator.get_system_prompt(Round.ANALYSIS) == DEFAULT_PROMPTS[Round.ANALYSIS]


def test_display_name_override():
    coordinator = RoundCoordinator(display_names={Round.ANALYSIS: "Analysis"})

    assert coordinator.get_display_name(Round.ANALYSIS) == "Analysis"
    assert coordinator.get_config(Round.CODEGEN).display_name == "代码生成"
